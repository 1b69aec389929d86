"""ターミナル制御コード（ANSI カラー）の描画。

色付き区間は強調用の span に変換し、それ以外の制御コードは除去する。
"""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class EmphasisClass(str, Enum):
    """変換後の強調クラス。"""

    PINK = "ansi-pink"
    GREEN = "ansi-green"


# 色コード → 強調クラス。区間は次の色/リセットコードか末尾まで
_EMPHASIS_RULES: tuple[tuple[re.Pattern[str], EmphasisClass], ...] = (
    (re.compile(r"\x1b\[95m(.*?)(\x1b\[\d+m|\x1b\[00m|$)"), EmphasisClass.PINK),
    (re.compile(r"\x1b\[92m(.*?)(\x1b\[\d+m|\x1b\[00m|$)"), EmphasisClass.GREEN),
)

# ESC が欠落して残ったコード片も対象にする
_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\x1b\[00m"),
    re.compile(r"\x1b\[\d+m"),
    re.compile(r"\[1m"),
    re.compile(r"\[92m"),
    re.compile(r"\[95m"),
    re.compile(r"\[00m"),
)


def _strip_until_stable(text: str) -> str:
    # 除去によって新しいコード片が現れなくなるまで繰り返す
    previous = None
    while previous != text:
        previous = text
        for pattern in _STRIP_PATTERNS:
            text = pattern.sub("", text)
    return text


def strip_control_codes(text: str) -> str:
    """制御コードをすべて除去する（強調変換なし）。"""
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    return _strip_until_stable(text)


def _render(text: str) -> str:
    for pattern, emphasis in _EMPHASIS_RULES:
        text = pattern.sub(rf'<span class="{emphasis.value}">\1</span>', text)
    return _strip_until_stable(text)


def render_control_codes(text: str) -> str:
    """制御コードを強調 span に変換し、残りを除去する。

    変換済みのテキストに再適用しても結果は変わらない。
    処理に失敗した場合は strip_control_codes にフォールバックし、例外は送出しない。

    Args:
        text: 受信した生テキスト

    Returns:
        描画済みテキスト
    """
    try:
        return _render(text)
    except (TypeError, re.error) as e:
        logger.warning(f"制御コードの変換に失敗したため除去のみ行います: {e}")
        return strip_control_codes(text)
