"""アプリケーションコンテキストの定義。

モニターの状態（トランスクリプト・進捗・接続）を 1 つのストアにまとめ、
MCP ツールへはライフスパンコンテキスト経由で参照を渡す。
"""

from dataclasses import dataclass, field

from crew_monitor.config.settings import Settings
from crew_monitor.managers.crew_config_client import CrewConfigClient
from crew_monitor.managers.event_notifier import EventNotifier
from crew_monitor.managers.message_channel import Connector, MessageChannel
from crew_monitor.managers.progress_tracker import ProgressTracker
from crew_monitor.managers.transcript_manager import TranscriptManager

TRANSCRIPT_HANDLER_ID = "transcript"
PROGRESS_HANDLER_ID = "progress"


@dataclass
class AppContext:
    """アプリケーションコンテキスト。"""

    settings: Settings
    notifier: EventNotifier
    channel: MessageChannel
    transcript: TranscriptManager
    tracker: ProgressTracker
    config_client: CrewConfigClient | None = None
    crew_type: str = ""
    _unregister: list = field(default_factory=list, repr=False)

    def wire_handlers(self) -> None:
        """チャネルにトランスクリプトと進捗のハンドラを登録する。"""
        self._unregister.append(
            self.channel.on_frame(TRANSCRIPT_HANDLER_ID, self.transcript.handle_frame)
        )
        self._unregister.append(
            self.channel.on_frame(PROGRESS_HANDLER_ID, self.tracker.dispatch)
        )

    async def start(self) -> None:
        """crew 構成を読み込み、接続を開始する。"""
        await self.tracker.load_config(self.crew_type)
        await self.channel.connect()

    async def shutdown(self) -> None:
        """ハンドラを解除してチャネルを閉じる。"""
        while self._unregister:
            self._unregister.pop()()
        await self.channel.close()


def build_app_context(
    settings: Settings,
    connector: Connector | None = None,
    config_client: CrewConfigClient | None = None,
) -> AppContext:
    """設定からコンテキストを組み立てる。

    Args:
        settings: 設定
        connector: WebSocket 接続関数（テスト時の差し替え用）
        config_client: crew 設定クライアント（省略時は settings から生成）

    Returns:
        ハンドラ登録済みの AppContext
    """
    notifier = EventNotifier(max_notices=settings.max_notices)
    client = config_client or CrewConfigClient(settings)
    channel = MessageChannel(
        settings.ws_url,
        notifier,
        reconnect_delay=settings.reconnect_delay_seconds,
        heartbeat_interval=settings.heartbeat_interval_seconds,
        connector=connector,
    )
    ctx = AppContext(
        settings=settings,
        notifier=notifier,
        channel=channel,
        transcript=TranscriptManager(),
        tracker=ProgressTracker(settings, notifier, config_client=client),
        config_client=client,
        crew_type=settings.crew_type,
    )
    ctx.wire_handlers()
    return ctx
