"""会話トランスクリプトのメッセージモデル。"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """メッセージの発信者種別。"""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class DeliveryStatus(str, Enum):
    """ユーザーメッセージの送信状態。"""

    SENDING = "sending"
    SENT = "sent"
    ERROR = "error"


def _time_label() -> str:
    return datetime.now().strftime("%H:%M:%S")


class ChatMessage(BaseModel):
    """トランスクリプトの 1 エントリ。

    preserved が True になったメッセージは以後変更されない。
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="メッセージID")
    content: str = Field(..., description="描画済みテキスト")
    role: MessageRole = Field(..., description="発信者種別")
    timestamp: str = Field(default_factory=_time_label, description="時刻ラベル")
    status: DeliveryStatus | None = Field(default=None, description="送信状態（user のみ）")
    thinking: bool = Field(default=False, description="分析中の一時表示フラグ")
    preserved: bool = Field(default=False, description="確定済みフラグ")

    def freeze(self) -> None:
        """メッセージを確定させる。"""
        self.preserved = True
        self.thinking = False
