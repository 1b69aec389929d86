"""WebSocket フレームモデル。

受信フレームは type をキーにした判別共用体として扱う。
"""

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from crew_monitor.models.crew import TaskStatus


class FrameType(str, Enum):
    """フレーム種別。"""

    # メッセージ
    CHAT = "chat"
    SYSTEM = "system"
    UPDATE = "update"
    RESULT = "result"

    # タスク
    TASK_STATUS = "task_status"

    # 設定
    SET_CUSTOM_CONFIG = "set_custom_config"

    # ユーザー操作
    REQUEST_INPUT = "request_input"
    USER_INPUT = "user_input"

    # 分析制御
    START_ANALYSIS = "start_analysis"

    # 接続維持
    HEARTBEAT = "heartbeat"
    HEARTBEAT_ACK = "heartbeat_ack"


class _TextFrame(BaseModel):
    """本文を持つフレームの共通部分。"""

    content: str | None = Field(default=None, description="本文")
    timestamp: float | str | None = Field(default=None, description="サーバー側タイムスタンプ")

    @property
    def text(self) -> str:
        """本文（未設定なら空文字列）。"""
        return self.content or ""


class ChatFrame(_TextFrame):
    type: Literal["chat"] = "chat"


class SystemFrame(_TextFrame):
    type: Literal["system"] = "system"


class UpdateFrame(_TextFrame):
    type: Literal["update"] = "update"


class ResultFrame(_TextFrame):
    type: Literal["result"] = "result"


class UserInputFrame(_TextFrame):
    type: Literal["user_input"] = "user_input"


class TaskStatusFrame(BaseModel):
    """タスクのステータスを直接指定するフレーム。"""

    type: Literal["task_status"] = "task_status"
    task_id: str = Field(..., description="タスクID")
    status: TaskStatus = Field(..., description="新しいステータス")
    agent_role: str | None = Field(default=None, description="担当エージェントのヒント")
    timestamp: float | str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        """in_progress 表記を in-progress に揃える。"""
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value


class RequestInputFrame(BaseModel):
    """ユーザー入力を要求するフレーム。"""

    type: Literal["request_input"] = "request_input"
    question: str = Field(default="", description="質問文")
    options: list[str] = Field(default_factory=list, description="選択肢")
    timestamp: float | str | None = None

    @field_validator("question", mode="before")
    @classmethod
    def default_question(cls, value):
        """null を空文字列として扱う。"""
        return "" if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def default_options(cls, value):
        """null を空リストとして扱う。"""
        return [] if value is None else value


class HeartbeatAckFrame(BaseModel):
    type: Literal["heartbeat_ack"] = "heartbeat_ack"
    timestamp: float | str | None = None


InboundFrame = Annotated[
    Union[
        ChatFrame,
        SystemFrame,
        UpdateFrame,
        ResultFrame,
        TaskStatusFrame,
        RequestInputFrame,
        UserInputFrame,
        HeartbeatAckFrame,
    ],
    Field(discriminator="type"),
]

# 本文推論の対象となるフレーム
ContentFrame = ChatFrame | UpdateFrame | ResultFrame

_inbound_adapter: TypeAdapter = TypeAdapter(InboundFrame)


def parse_frame(data: dict[str, Any]) -> InboundFrame:
    """辞書を受信フレームに変換する。

    Raises:
        pydantic.ValidationError: 未知の type やフィールド不正の場合
    """
    return _inbound_adapter.validate_python(data)


def build_heartbeat_frame() -> dict[str, Any]:
    """heartbeat フレームを組み立てる。"""
    return {"type": FrameType.HEARTBEAT.value, "timestamp": int(time.time() * 1000)}


def build_user_input_frame(content: str) -> dict[str, Any]:
    """user_input フレームを組み立てる。"""
    return {"type": FrameType.USER_INPUT.value, "content": content}


def build_start_analysis_frame(content: str, crew_type: str) -> dict[str, Any]:
    """start_analysis フレームを組み立てる。"""
    return {
        "type": FrameType.START_ANALYSIS.value,
        "content": content,
        "crew_type": crew_type,
    }


def build_custom_config_frame(config: dict[str, Any]) -> dict[str, Any]:
    """set_custom_config フレームを組み立てる。"""
    return {"type": FrameType.SET_CUSTOM_CONFIG.value, "config": config}
