"""データモデルモジュール。"""

from .connection import ConnectionState, ConnectionStatus
from .crew import Agent, CrewConfig, Task, TaskStatus, TaskTemplate
from .events import (
    ActiveAgentChanged,
    ConnectionNotice,
    MonitorEvent,
    NoticeLevel,
    TaskStatusChanged,
)
from .frame import (
    ChatFrame,
    FrameType,
    HeartbeatAckFrame,
    InboundFrame,
    RequestInputFrame,
    ResultFrame,
    SystemFrame,
    TaskStatusFrame,
    UpdateFrame,
    UserInputFrame,
    parse_frame,
)
from .message import ChatMessage, DeliveryStatus, MessageRole

__all__ = [
    "ActiveAgentChanged",
    "Agent",
    "ChatFrame",
    "ChatMessage",
    "ConnectionNotice",
    "ConnectionState",
    "ConnectionStatus",
    "CrewConfig",
    "DeliveryStatus",
    "FrameType",
    "HeartbeatAckFrame",
    "InboundFrame",
    "MessageRole",
    "MonitorEvent",
    "NoticeLevel",
    "RequestInputFrame",
    "ResultFrame",
    "SystemFrame",
    "Task",
    "TaskStatus",
    "TaskStatusChanged",
    "TaskStatusFrame",
    "TaskTemplate",
    "UpdateFrame",
    "UserInputFrame",
    "parse_frame",
]
