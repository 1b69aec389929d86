"""テキスト推論のルールテーブル。

タスク検出・エージェント検出・各種マーカーを宣言順に評価するデータとして定義する。
テーブルの並び順がそのまま優先順位になる。
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class TaskKeywordRule:
    """タスク検出ルール（キーワードのいずれかを含めば一致）。"""

    task_id: str
    """一致時に返すタスクID"""

    keywords: tuple[str, ...]
    """大文字小文字を区別しない部分一致キーワード"""

    def matches(self, text: str) -> bool:
        """テキストがいずれかのキーワードを含むかを判定する。"""
        lowered = text.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)


# 複数カテゴリに一致した場合は先に宣言されたものを採用する。
TASK_KEYWORD_RULES: tuple[TaskKeywordRule, ...] = (
    TaskKeywordRule(
        "ideation",
        ("产品创意", "创意生成", "创意构思", "产品概念", "创新点"),
    ),
    TaskKeywordRule(
        "tiktok",
        ("TikTok", "抖音", "短视频平台", "平台分析", "用户群体", "平台特点"),
    ),
    TaskKeywordRule(
        "market",
        ("市场研究", "市场分析", "竞品分析", "市场规模", "市场趋势", "竞争对手"),
    ),
    TaskKeywordRule(
        "tech",
        ("技术可行性", "技术评估", "技术架构", "开发难度", "技术方案", "实现方式"),
    ),
    TaskKeywordRule(
        "refinement",
        ("方案完善", "产品方案", "方案优化", "最终方案", "产品定义", "功能列表"),
    ),
)

# タスク完了を示すマーカー（大文字小文字を区別しない）
COMPLETION_MARKERS: tuple[str, ...] = (
    "done",
    "resolved",
    "final answer",
    "conclusion",
    "已完成",
    "已解决",
    "最终答案",
    "结论",
)

# result フレームで全タスク完了とみなすマーカー
FINAL_RESULT_MARKERS: tuple[str, ...] = ("最终产品方案", "Final Answer", "产品概念")

# 直前のメッセージを確定させて新しいメッセージを開始するマーカー
PRESERVATION_TRIGGERS: tuple[str, ...] = (
    "Final Answer:",
    "产品概念",
    "Task:",
    "\x1b[95m## Task:",
    "Agent:",
    "[系统]:",
    "[产品经理]:",
)

# タスク推論を行わないシステム発信のマーカー
SYSTEM_ORIGIN_MARKERS: tuple[str, ...] = ("[系统]",)

# エージェントとして採用しない名前（小文字で比較）
REJECTED_AGENT_NAMES: frozenset[str] = frozenset({"system", "系统"})


def detect_task_id(
    text: str, rules: tuple[TaskKeywordRule, ...] = TASK_KEYWORD_RULES
) -> str | None:
    """テキストに最初に一致したタスクIDを返す。"""
    if not text:
        return None
    for rule in rules:
        if rule.matches(text):
            return rule.task_id
    return None


def _contains_any(text: str, markers: tuple[str, ...], *, ignore_case: bool = False) -> bool:
    if not text:
        return False
    if ignore_case:
        lowered = text.lower()
        return any(marker.lower() in lowered for marker in markers)
    return any(marker in text for marker in markers)


def has_completion_marker(text: str) -> bool:
    """完了マーカーを含むか。"""
    return _contains_any(text, COMPLETION_MARKERS, ignore_case=True)


def has_final_marker(text: str) -> bool:
    """最終結果マーカーを含むか。"""
    return _contains_any(text, FINAL_RESULT_MARKERS)


def has_preservation_trigger(text: str) -> bool:
    """メッセージ確定トリガーを含むか。"""
    return _contains_any(text, PRESERVATION_TRIGGERS)


def is_system_origin(text: str) -> bool:
    """システム発信のテキストか。"""
    return _contains_any(text, SYSTEM_ORIGIN_MARKERS)


# ========== エージェント検出 ==========


@dataclass(frozen=True)
class AgentPatternRule:
    """正規表現の第 1 グループを役割名として取り出すルール。"""

    name: str
    pattern: re.Pattern[str]

    def extract(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if not match:
            return None
        role = match.group(1).strip().strip("*#").strip()
        return role or None


@dataclass(frozen=True)
class EmojiRoleRule:
    """先頭の絵文字から役割名を決めるルール。"""

    emoji: str
    role: str


AGENT_TAG_RULE = AgentPatternRule(
    "agent_tag", re.compile(r"Agent\s*[:：]\s*([^\r\n]{1,60})")
)

# 異体字セレクタ付きの表記を先に評価する
EMOJI_ROLE_RULES: tuple[EmojiRoleRule, ...] = (
    EmojiRoleRule("👨‍💼", "产品经理"),
    EmojiRoleRule("💡", "产品经理"),
    EmojiRoleRule("📱", "TikTok平台分析师"),
    EmojiRoleRule("📊", "市场研究员"),
    EmojiRoleRule("📈", "市场研究员"),
    EmojiRoleRule("⚙️", "技术专家"),
    EmojiRoleRule("⚙", "技术专家"),
    EmojiRoleRule("🔧", "技术专家"),
    EmojiRoleRule("💻", "技术专家"),
)

BRACKET_RULES: tuple[AgentPatternRule, ...] = (
    AgentPatternRule("square", re.compile(r"\[([^\[\]\r\n]{1,40})\]\s*[:：]")),
    AgentPatternRule("lenticular", re.compile(r"【([^【】\r\n]{1,40})】")),
    AgentPatternRule("corner", re.compile(r"「([^「」\r\n]{1,40})」")),
    AgentPatternRule("quote", re.compile(r"[“\"]([^“”\"\r\n]{1,40})[”\"]\s*[:：]")),
)

ROLE_SUFFIX_RULE = AgentPatternRule(
    "role_suffix",
    re.compile(
        r"^\s*([\w\- ]{0,30}?(?:经理|分析师|研究员|专家|工程师|设计师|顾问"
        r"|Manager|Analyst|Researcher|Expert|Engineer|Designer|Specialist))\s*[:：]",
        re.MULTILINE,
    ),
)


def _match_leading_emoji(text: str) -> str | None:
    stripped = text.lstrip()
    for rule in EMOJI_ROLE_RULES:
        if stripped.startswith(rule.emoji):
            return rule.role
    return None


def detect_agent_role(text: str) -> str | None:
    """テキストから発言者の役割名を推定する。

    Agent タグ → 先頭絵文字 → 括弧表記 → 役割接尾辞 の順に評価し、
    最初に一致したものを採用する。一致した名前が system の場合は None。

    Args:
        text: 制御コード除去済みのテキスト

    Returns:
        役割名、または検出できない場合は None
    """
    if not text:
        return None

    role = AGENT_TAG_RULE.extract(text)
    if role is None:
        role = _match_leading_emoji(text)
    if role is None:
        for rule in BRACKET_RULES:
            role = rule.extract(text)
            if role is not None:
                break
    if role is None:
        role = ROLE_SUFFIX_RULE.extract(text)

    if role is None or role.lower() in REJECTED_AGENT_NAMES:
        return None
    return role
