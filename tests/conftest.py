"""pytest設定とフィクスチャ。"""

import asyncio
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from crew_monitor.config.settings import Settings
from crew_monitor.context import build_app_context
from crew_monitor.errors import CrewConfigError
from crew_monitor.managers.event_notifier import EventNotifier
from crew_monitor.managers.message_channel import MessageChannel
from crew_monitor.managers.progress_tracker import ProgressTracker
from crew_monitor.managers.transcript_manager import TranscriptManager

_CLOSE = object()


class FakeWebSocket:
    """テスト用の WebSocket 接続。"""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def feed(self, raw: str | bytes) -> None:
        """受信データを投入する。"""
        self._queue.put_nowait(raw)

    def drop(self) -> None:
        """サーバー側から切断されたことにする。"""
        self._queue.put_nowait(_CLOSE)

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """接続ごとに FakeWebSocket を返す接続関数。"""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.kwargs: list[dict] = []
        self.sockets: list[FakeWebSocket] = []
        self.error: Exception | None = None

    async def __call__(self, url: str, **kwargs) -> FakeWebSocket:
        self.calls.append(url)
        self.kwargs.append(kwargs)
        if self.error is not None:
            raise self.error
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


async def settle(rounds: int = 5) -> None:
    """イベントループに処理を進めさせる。"""
    for _ in range(rounds):
        await asyncio.sleep(0)


def get_tool_fn(mcp, name: str):
    """登録済みツールの関数を取得する。"""
    for tool in mcp._tool_manager._tools.values():
        if tool.name == name:
            return tool.fn
    return None


@pytest.fixture
def temp_dir():
    """一時ディレクトリを作成する。"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings():
    """テスト用の設定を作成する。"""
    return Settings(
        _env_file=None,
        ws_url="ws://crew.test/ws",
        api_base_url="http://crew.test",
        crew_type="product_ideation",
        reconnect_delay_seconds=0.05,
        heartbeat_interval_seconds=0,
    )


@pytest.fixture
def notifier(settings):
    """EventNotifierインスタンスを作成する。"""
    return EventNotifier(max_notices=settings.max_notices)


@pytest.fixture
def transcript():
    """TranscriptManagerインスタンスを作成する。"""
    return TranscriptManager()


@pytest.fixture
def tracker(settings, notifier):
    """既定構成の ProgressTracker を作成する。"""
    return ProgressTracker(settings, notifier)


@pytest.fixture
def connector():
    """FakeConnectorインスタンスを作成する。"""
    return FakeConnector()


@pytest.fixture
async def channel(settings, notifier, connector):
    """MessageChannelインスタンスを作成する。テスト後にクローズする。"""
    ch = MessageChannel(
        settings.ws_url,
        notifier,
        reconnect_delay=settings.reconnect_delay_seconds,
        heartbeat_interval=0,
        connector=connector,
    )
    try:
        yield ch
    finally:
        await ch.close()


@pytest.fixture
async def app_ctx(settings, connector):
    """FakeConnector で接続する AppContext を作成する。"""
    config_client = MagicMock()
    config_client.fetch_crew_info = AsyncMock(side_effect=CrewConfigError("offline"))
    config_client.fetch_crew_types = AsyncMock(return_value=["product_ideation"])
    ctx = build_app_context(settings, connector=connector, config_client=config_client)
    try:
        yield ctx
    finally:
        await ctx.shutdown()


@pytest.fixture
def mock_ctx(app_ctx):
    """MCP Context のモック。"""
    mock = MagicMock()
    mock.request_context.lifespan_context = app_ctx
    return mock
