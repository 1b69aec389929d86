"""接続状態モデル。"""

from enum import Enum

from pydantic import BaseModel, Field


class ConnectionStatus(str, Enum):
    """WebSocket の接続状態。"""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionState(BaseModel):
    """接続状態と最終 heartbeat。"""

    status: ConnectionStatus = Field(
        default=ConnectionStatus.DISCONNECTED, description="接続状態"
    )
    last_heartbeat: float | str | None = Field(
        default=None, description="最後に受信した heartbeat_ack のタイムスタンプ"
    )
