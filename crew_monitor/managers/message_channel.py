"""WebSocket メッセージチャネル。

crew サーバーとの接続を維持し、受信したフレームを復号して登録済みハンドラへ配信する。

接続が切れた場合は固定間隔で無期限に再接続を試みる（バックオフ・回数上限なし）。
サーバー側に再送の仕組みがないため、切断中に送られたフレームは失われる。
"""

import asyncio
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from crew_monitor.managers.event_notifier import EventNotifier
from crew_monitor.models.connection import ConnectionState, ConnectionStatus
from crew_monitor.models.events import NoticeLevel
from crew_monitor.models.frame import (
    FrameType,
    InboundFrame,
    build_heartbeat_frame,
    parse_frame,
)

logger = logging.getLogger(__name__)

FrameHandler = Callable[[InboundFrame], None]
Connector = Callable[..., Awaitable[Any]]

_SURROGATE_PAIR_ESCAPE = re.compile(
    r"\\u([dD][89abAB][0-9a-fA-F]{2})\\u([dD][c-fC-F][0-9a-fA-F]{2})"
)
_UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")
_MAX_DECODE_PASSES = 5


def _decode_pair(match: re.Match[str]) -> str:
    high = int(match.group(1), 16)
    low = int(match.group(2), 16)
    return chr(0x10000 + ((high - 0xD800) << 10) + (low - 0xDC00))


def _decode_single(match: re.Match[str]) -> str:
    code = int(match.group(1), 16)
    # 対になっていないサロゲートはそのまま残す
    if 0xD800 <= code <= 0xDFFF:
        return match.group(0)
    return chr(code)


def decode_unicode_escapes(text: str) -> str:
    """リテラルの \\uXXXX 表記を文字に戻す。

    二重にエスケープされたテキストに対応するため、変化がなくなるまで繰り返す。
    """
    for _ in range(_MAX_DECODE_PASSES):
        decoded = _SURROGATE_PAIR_ESCAPE.sub(_decode_pair, text)
        decoded = _UNICODE_ESCAPE.sub(_decode_single, decoded)
        if decoded == text:
            break
        text = decoded
    return text


def decode_frame_text(data: dict[str, Any]) -> dict[str, Any]:
    """フレームの自由テキスト（content / question / options）を復号する。"""
    for key in ("content", "question"):
        if isinstance(data.get(key), str):
            data[key] = decode_unicode_escapes(data[key])
    if isinstance(data.get("options"), list):
        data["options"] = [
            decode_unicode_escapes(option) if isinstance(option, str) else option
            for option in data["options"]
        ]
    return data


class MessageChannel:
    """crew サーバーとの WebSocket 接続を管理するクラス。

    状態遷移: disconnected → connecting → connected → disconnected → ...
    フレームハンドラは同期関数で、登録順に呼び出される。
    """

    def __init__(
        self,
        url: str,
        notifier: EventNotifier,
        reconnect_delay: float = 5.0,
        heartbeat_interval: float = 30.0,
        connector: Connector | None = None,
    ) -> None:
        """MessageChannelを初期化する。

        Args:
            url: WebSocket エンドポイント
            notifier: 利用者向け通知の発行先
            reconnect_delay: 切断から再接続までの固定待機秒数
            heartbeat_interval: heartbeat 送信間隔（秒、0 で無効）
            connector: 接続を確立する関数（テスト時の差し替え用）
        """
        self.url = url
        self.notifier = notifier
        self.reconnect_delay = reconnect_delay
        self.heartbeat_interval = heartbeat_interval
        self._connector: Connector = connector or websockets.connect

        self.state = ConnectionState()
        self._handlers: dict[str, FrameHandler] = {}
        self._ws: Any = None
        self._receive_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closed = False

    @property
    def status(self) -> ConnectionStatus:
        """現在の接続状態。"""
        return self.state.status

    @property
    def is_connected(self) -> bool:
        return self.state.status == ConnectionStatus.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        """再接続タイマーが待機中かどうか。"""
        return self._reconnect_handle is not None

    # ========== ハンドラ登録 ==========

    def on_frame(self, handler_id: str, handler: FrameHandler) -> Callable[[], None]:
        """フレームハンドラを登録する。

        同じ ID で再登録した場合は、呼び出し順を保ったままハンドラを置き換える。

        Args:
            handler_id: ハンドラ名
            handler: 復号済みフレームを受け取る関数

        Returns:
            登録を解除する関数
        """
        self._handlers[handler_id] = handler

        def _unregister() -> None:
            if self._handlers.get(handler_id) is handler:
                del self._handlers[handler_id]

        return _unregister

    # ========== 接続管理 ==========

    async def connect(self) -> None:
        """接続されていなければ接続を開始する。"""
        if self._closed:
            logger.debug("クローズ済みのチャネルには接続しません")
            return
        if self.state.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            return

        self._cancel_reconnect()
        self.state.status = ConnectionStatus.CONNECTING
        logger.info(f"WebSocket に接続しています: {self.url}")

        try:
            ws = await self._connector(self.url, ping_interval=None)
        except (OSError, WebSocketException) as e:
            logger.error(f"WebSocket 接続に失敗しました: {e}")
            self._handle_transport_lost(error=True)
            return

        if self._closed:
            await self._close_socket(ws)
            return

        self._ws = ws
        self.state.status = ConnectionStatus.CONNECTED
        self.notifier.notice(NoticeLevel.SUCCESS, "サーバーに接続しました")

        self._receive_task = asyncio.create_task(
            self._receive_loop(ws), name="crew-monitor-receive"
        )
        if self.heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(ws), name="crew-monitor-heartbeat"
            )

    async def close(self) -> None:
        """チャネルを終了する。

        待機中の再接続は発火せず、以後フレームは配信されない。
        """
        self._closed = True
        self._cancel_reconnect()

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._reconnect_task, self._heartbeat_task, self._receive_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_task = None
        self._heartbeat_task = None
        self._receive_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            await self._close_socket(ws)

        self.state.status = ConnectionStatus.DISCONNECTED
        logger.info("WebSocket チャネルを終了しました")

    async def _close_socket(self, ws: Any) -> None:
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.warning(f"WebSocket のクローズでエラーが発生しました: {e}")

    async def _receive_loop(self, ws: Any) -> None:
        """受信ループ。終了時は切断として扱う。"""
        error = False
        try:
            async for raw in ws:
                self.process_raw(raw)
        except ConnectionClosed as e:
            logger.warning(f"WebSocket 接続が閉じられました: {e}")
        except (OSError, WebSocketException) as e:
            logger.error(f"WebSocket エラー: {e}")
            error = True

        if ws is self._ws:
            self._handle_transport_lost(error=error)

    async def _heartbeat_loop(self, ws: Any) -> None:
        """接続中は一定間隔で heartbeat を送信する。"""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if ws is not self._ws or not self.is_connected:
                break
            await self.send(build_heartbeat_frame())

    def _handle_transport_lost(self, error: bool) -> None:
        """切断・エラー時の処理。再接続を 1 回だけ予約する。"""
        self._ws = None
        self.state.status = ConnectionStatus.DISCONNECTED

        heartbeat = self._heartbeat_task
        self._heartbeat_task = None
        if heartbeat is not None and heartbeat is not asyncio.current_task():
            heartbeat.cancel()

        if self._closed:
            return

        if error:
            self.notifier.notice(NoticeLevel.ERROR, "WebSocket 接続エラーが発生しました")
        self.notifier.notice(
            NoticeLevel.WARNING, "接続が切断されました。再接続を試みています..."
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closed or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._fire_reconnect)
        logger.info(f"{self.reconnect_delay} 秒後に再接続します")

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if self._closed:
            return
        self._reconnect_task = asyncio.create_task(
            self.connect(), name="crew-monitor-reconnect"
        )

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # ========== 送受信 ==========

    async def send(self, payload: Any) -> bool:
        """JSON にエンコードして送信する。

        未接続の場合はキューに積まず、通知を出して False を返す。

        Returns:
            送信できた場合 True
        """
        ws = self._ws
        if ws is None or not self.is_connected:
            self.notifier.notice(NoticeLevel.ERROR, "サーバーに接続されていません")
            return False

        try:
            data = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"送信データを JSON に変換できません: {e}")
            return False

        try:
            await ws.send(data)
        except (OSError, WebSocketException) as e:
            logger.error(f"送信に失敗しました: {e}")
            self.notifier.notice(NoticeLevel.ERROR, "メッセージの送信に失敗しました")
            return False
        return True

    def process_raw(self, raw: str | bytes) -> InboundFrame | None:
        """受信した生データを 1 フレームとして処理する。

        解析できないデータはログに記録して破棄する。heartbeat_ack は
        受信時刻を記録するのみでハンドラへは配信しない。

        Returns:
            配信したフレーム（破棄・heartbeat の場合は None）
        """
        if self._closed:
            return None

        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"WebSocket メッセージの解析に失敗しました: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"WebSocket メッセージの形式が不正です: {type(data).__name__}")
            return None

        if data.get("type") == FrameType.HEARTBEAT_ACK.value:
            timestamp = data.get("timestamp")
            self.state.last_heartbeat = (
                timestamp if timestamp is not None else int(time.time() * 1000)
            )
            return None

        try:
            frame = parse_frame(decode_frame_text(data))
        except ValidationError as e:
            logger.warning(f"未対応のフレームを破棄しました (type={data.get('type')}): {e}")
            return None

        for handler_id, handler in list(self._handlers.items()):
            try:
                handler(frame)
            except Exception:
                logger.exception(f"フレームハンドラ {handler_id} でエラーが発生しました")
        return frame
