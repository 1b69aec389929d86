"""モニター内イベントの購読・通知。"""

import logging
from collections import deque
from collections.abc import Callable
from typing import TypeVar

from crew_monitor.models.events import ConnectionNotice, MonitorEvent, NoticeLevel

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=MonitorEvent)


class EventNotifier:
    """イベント種別ごとに購読者へ通知するオブザーバー。

    購読者が 1 件もなくても emit は正常に終了する。
    購読者の例外はログに記録し、他の購読者への通知は継続する。
    """

    def __init__(self, max_notices: int = 50) -> None:
        """EventNotifierを初期化する。

        Args:
            max_notices: 保持する ConnectionNotice の最大件数
        """
        self._subscribers: dict[type[MonitorEvent], list[Callable[[MonitorEvent], None]]] = {}
        self.notices: deque[ConnectionNotice] = deque(maxlen=max_notices)

    def subscribe(
        self, event_type: type[EventT], callback: Callable[[EventT], None]
    ) -> Callable[[], None]:
        """イベントを購読する。

        Args:
            event_type: 購読するイベントクラス（サブクラスも通知対象）
            callback: 通知を受け取る関数

        Returns:
            購読を解除する関数
        """
        callbacks = self._subscribers.setdefault(event_type, [])
        callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return _unsubscribe

    def emit(self, event: MonitorEvent) -> None:
        """イベントを購読者へ通知する。"""
        if isinstance(event, ConnectionNotice):
            self.notices.append(event)

        for event_type, callbacks in list(self._subscribers.items()):
            if not isinstance(event, event_type):
                continue
            for callback in list(callbacks):
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(
                        f"イベント購読者の処理に失敗しました ({type(event).__name__}): {e}"
                    )

    def notice(self, level: NoticeLevel, message: str) -> ConnectionNotice:
        """利用者向け通知を発行する。"""
        event = ConnectionNotice(level=level, message=message)
        log_level = {
            NoticeLevel.ERROR: logging.ERROR,
            NoticeLevel.WARNING: logging.WARNING,
        }.get(level, logging.INFO)
        logger.log(log_level, message)
        self.emit(event)
        return event

    def recent_notices(self, limit: int | None = None) -> list[ConnectionNotice]:
        """最近の通知を古い順に返す。"""
        notices = list(self.notices)
        if limit is not None:
            notices = notices[-limit:] if limit > 0 else []
        return notices
