"""モニター内部で通知されるイベントモデル。"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from crew_monitor.models.crew import TaskStatus


class NoticeLevel(str, Enum):
    """通知の重要度。"""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class MonitorEvent(BaseModel):
    """イベントの基底クラス。"""

    created_at: datetime = Field(default_factory=datetime.now, description="発生日時")


class TaskStatusChanged(MonitorEvent):
    """タスクのステータスが変化した。"""

    task_id: str = Field(..., description="タスクID")
    task_name: str = Field(..., description="タスク名")
    old_status: TaskStatus = Field(..., description="変更前")
    new_status: TaskStatus = Field(..., description="変更後")


class ActiveAgentChanged(MonitorEvent):
    """アクティブエージェントが切り替わった。"""

    role: str = Field(..., description="検出された役割名")
    matched_role: str | None = Field(
        default=None, description="既知エージェントと照合できた場合の役割名"
    )


class ConnectionNotice(MonitorEvent):
    """利用者向けの接続通知。"""

    level: NoticeLevel = Field(..., description="重要度")
    message: str = Field(..., description="通知文")
