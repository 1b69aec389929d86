"""タスク進捗・アクティブエージェント推論モジュール。

受信フレームの本文からタスクの進行状況と発言中のエージェントを推定し、
タスクのステータスを pending → in-progress → completed の状態機械で管理する。
"""

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from crew_monitor.config.crew_defaults import (
    DEFAULT_TASK_ICONS,
    DEFAULT_TASK_IDS,
    default_agents,
    default_tasks,
)
from crew_monitor.config.inference_rules import (
    detect_agent_role,
    detect_task_id,
    has_completion_marker,
    has_final_marker,
    is_system_origin,
)
from crew_monitor.config.settings import Settings
from crew_monitor.errors import CrewConfigError
from crew_monitor.managers.control_codes import strip_control_codes
from crew_monitor.managers.event_notifier import EventNotifier
from crew_monitor.models.crew import Agent, CrewConfig, Task, TaskStatus, is_forward_transition
from crew_monitor.models.events import ActiveAgentChanged, TaskStatusChanged
from crew_monitor.models.frame import (
    ChatFrame,
    ContentFrame,
    InboundFrame,
    ResultFrame,
    TaskStatusFrame,
    UpdateFrame,
    build_custom_config_frame,
)

if TYPE_CHECKING:
    from crew_monitor.managers.crew_config_client import CrewConfigClient

logger = logging.getLogger(__name__)

Transmit = Callable[[dict[str, Any]], bool | Awaitable[bool]]


class ProgressTracker:
    """タスク進捗とアクティブエージェントを追跡するクラス。

    タスク・エージェントの一覧は設定の読み込み（または既定値へのフォールバック）で
    まるごと作り直される。in-progress のタスクは常に高々 1 件。
    """

    def __init__(
        self,
        settings: Settings,
        notifier: EventNotifier,
        config_client: "CrewConfigClient | None" = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """ProgressTrackerを初期化する。

        Args:
            settings: 設定
            notifier: イベント通知先
            config_client: crew 設定サービスのクライアント
            clock: ハイライト期限の計算に使う単調時計
        """
        self.settings = settings
        self.notifier = notifier
        self.config_client = config_client
        self._clock = clock

        self.tasks: list[Task] = default_tasks()
        self.agents: list[Agent] = default_agents()
        self.llm_models: dict[str, str] = {}
        self.config_source = "default"

        self.current_task_id: str | None = None
        self.active_agent_role: str | None = None
        self.highlighted_agent: Agent | None = None
        self._highlight_until = 0.0

    # ========== 設定 ==========

    async def load_config(self, crew_type: str | None = None) -> bool:
        """crew 構成を取得してタスク・エージェント一覧を作り直す。

        取得に失敗した場合は組み込みの既定構成を使用する。

        Args:
            crew_type: crew の種類（省略時は設定値）

        Returns:
            設定サービスの構成を適用できた場合 True、既定構成にフォールバックした場合 False
        """
        crew_type = crew_type or self.settings.crew_type
        if self.config_client is None:
            logger.info("設定クライアントがないため既定の crew 構成を使用します")
            self.use_default_config()
            return False

        try:
            config = await self.config_client.fetch_crew_info(crew_type)
            if not config.tasks or not config.agents:
                raise CrewConfigError("タスクまたはエージェントが空です")
        except CrewConfigError as e:
            logger.warning(f"crew 構成の取得に失敗したため既定構成を使用します ({crew_type}): {e}")
            self.use_default_config()
            return False

        self.apply_config(config)
        logger.info(
            f"crew 構成を読み込みました ({crew_type}): "
            f"タスク {len(self.tasks)} 件, エージェント {len(self.agents)} 件"
        )
        return True

    def _derive_task_name(self, description: str, index: int) -> str:
        """タスク説明の 1 行目から表示名を生成する。"""
        first_line = next(
            (line.strip() for line in description.splitlines() if line.strip()), ""
        )
        if not first_line:
            return f"Task {index + 1}"
        max_length = self.settings.task_name_max_length
        if len(first_line) > max_length:
            return first_line[:max_length] + "..."
        return first_line

    def apply_config(self, config: CrewConfig) -> None:
        """CrewConfig をタスク・エージェント一覧に反映する。

        タスクには位置順に ID とアイコンを割り当てる。
        """
        tasks = []
        for index, template in enumerate(config.tasks):
            task_id = (
                DEFAULT_TASK_IDS[index] if index < len(DEFAULT_TASK_IDS) else f"task-{index + 1}"
            )
            tasks.append(
                Task(
                    id=task_id,
                    name=self._derive_task_name(template.description, index),
                    icon=DEFAULT_TASK_ICONS[index % len(DEFAULT_TASK_ICONS)],
                    description=template.description,
                    expected_output=template.expected_output,
                    agent_role=template.agent_role,
                    enabled=template.enabled,
                )
            )
        self._replace_collections(
            tasks,
            [agent.model_copy(deep=True) for agent in config.agents],
            dict(config.llm_models),
            source="remote",
        )

    def use_default_config(self) -> None:
        """組み込みの既定構成に切り替える。"""
        self._replace_collections(default_tasks(), default_agents(), {}, source="default")

    def _replace_collections(
        self,
        tasks: list[Task],
        agents: list[Agent],
        llm_models: dict[str, str],
        source: str,
    ) -> None:
        self.tasks = tasks
        self.agents = agents
        self.llm_models = llm_models
        self.config_source = source
        self.current_task_id = None
        self.active_agent_role = None
        self.highlighted_agent = None
        self._highlight_until = 0.0

    # ========== タスク状態 ==========

    def get_task(self, task_id: str) -> Task | None:
        """タスクを取得する。"""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def _set_status(self, task: Task, status: TaskStatus) -> bool:
        """ステータスを変更して通知する。逆行する遷移は拒否する。"""
        old_status = TaskStatus(task.status)
        if old_status == status:
            return True
        if not is_forward_transition(old_status, status):
            logger.warning(
                f"タスク {task.id} のステータス逆行を拒否しました: {old_status.value} -> {status.value}"
            )
            return False
        self._apply_status(task, old_status, status)
        return True

    def _apply_status(self, task: Task, old_status: TaskStatus, status: TaskStatus) -> None:
        """遷移の検証なしでステータスを書き換えて通知する。"""
        task.status = status
        logger.info(f"タスク {task.id} のステータスを更新: {old_status.value} -> {status.value}")
        self.notifier.emit(
            TaskStatusChanged(
                task_id=task.id,
                task_name=task.name,
                old_status=old_status,
                new_status=status,
            )
        )

    def update_task_status(self, task_id: str, status: TaskStatus | str) -> bool:
        """タスクのステータスを更新する。

        in-progress は set_current_task、completed は complete_task を経由するため、
        単一の進行中タスクという制約は常に保たれる。

        Returns:
            更新できた場合 True（未知のタスクや逆行の場合 False）
        """
        status = TaskStatus(status)
        if status == TaskStatus.IN_PROGRESS:
            return self.set_current_task(task_id)
        if status == TaskStatus.COMPLETED:
            return self.complete_task(task_id)

        task = self.get_task(task_id)
        if task is None:
            logger.warning(f"未知のタスクです: {task_id}")
            return False
        return self._set_status(task, status)

    def set_current_task(self, task_id: str) -> bool:
        """タスクを進行中にし、直前の進行中タスクを完了にする。

        Returns:
            対象タスクが進行中になった場合 True
        """
        task = self.get_task(task_id)
        if task is None:
            logger.warning(f"未知のタスクです: {task_id}")
            return False
        if task.status == TaskStatus.COMPLETED:
            logger.debug(f"完了済みタスクは再開しません: {task_id}")
            return False
        if self.current_task_id == task_id:
            return self._set_status(task, TaskStatus.IN_PROGRESS)

        if self.current_task_id is not None:
            previous = self.get_task(self.current_task_id)
            if previous is not None:
                self._set_status(previous, TaskStatus.COMPLETED)
        # ポインタ外で進行中になっているタスクも完了させる
        for other in self.tasks:
            if other.id != task_id and other.status == TaskStatus.IN_PROGRESS:
                self._set_status(other, TaskStatus.COMPLETED)

        self.current_task_id = task_id
        return self._set_status(task, TaskStatus.IN_PROGRESS)

    def complete_task(self, task_id: str) -> bool:
        """タスクを完了にし、現在のタスクだった場合は次のタスクへ進める。"""
        task = self.get_task(task_id)
        if task is None:
            logger.warning(f"未知のタスクです: {task_id}")
            return False
        self._set_status(task, TaskStatus.COMPLETED)
        if self.current_task_id == task_id:
            self._advance_current_task(task_id)
        return True

    def _advance_current_task(self, completed_task_id: str) -> None:
        """完了したタスクの次にある有効な pending タスクを進行中にする。"""
        index = next(
            (i for i, t in enumerate(self.tasks) if t.id == completed_task_id), -1
        )
        ordered = self.tasks[index + 1 :] + self.tasks[: index + 1]
        next_task = next(
            (t for t in ordered if t.enabled and t.status == TaskStatus.PENDING), None
        )
        if next_task is None:
            self.current_task_id = None
            logger.info("残りのタスクがないため現在のタスクをクリアしました")
            return
        self.current_task_id = next_task.id
        self._set_status(next_task, TaskStatus.IN_PROGRESS)

    def complete_all_tasks(self) -> None:
        """有効な未完了タスクを全て完了にし、現在のタスクをクリアする。"""
        for task in self.tasks:
            if task.enabled and task.status != TaskStatus.COMPLETED:
                self._set_status(task, TaskStatus.COMPLETED)
        self.current_task_id = None

    def reset_progress(self) -> None:
        """全タスクを pending に戻す（明示的なリセットのみ逆行を許可する）。"""
        self.current_task_id = None
        for task in self.tasks:
            old_status = TaskStatus(task.status)
            if old_status != TaskStatus.PENDING:
                self._apply_status(task, old_status, TaskStatus.PENDING)
        logger.info("タスク進捗をリセットしました")

    @property
    def task_progress(self) -> int:
        """有効タスクに占める完了タスクの割合（%）。"""
        enabled = [t for t in self.tasks if t.enabled]
        if not enabled:
            return 0
        completed = sum(1 for t in enabled if t.status == TaskStatus.COMPLETED)
        return int(completed * 100 / len(enabled) + 0.5)

    def set_task_enabled(self, task_id: str, enabled: bool) -> bool:
        """タスクの有効フラグを切り替える。"""
        task = self.get_task(task_id)
        if task is None:
            return False
        task.enabled = enabled
        return True

    def set_agent_enabled(self, role: str, enabled: bool) -> bool:
        """エージェントの有効フラグを切り替える。"""
        for agent in self.agents:
            if agent.role == role:
                agent.enabled = enabled
                return True
        return False

    # ========== 推論 ==========

    def detect_task_from_text(self, text: str) -> str | None:
        """テキストから該当するタスクIDを推定する。

        システム発信のテキストと無効タスクは対象外。
        """
        if not text or is_system_origin(text):
            return None
        task_id = detect_task_id(text)
        if task_id is None:
            return None
        task = self.get_task(task_id)
        if task is None or not task.enabled:
            return None
        return task_id

    def _apply_detected_task(self, task_id: str, text: str) -> None:
        if has_completion_marker(text):
            self.complete_task(task_id)
        else:
            self.set_current_task(task_id)

    def find_agent(self, role: str) -> Agent | None:
        """役割名を既知エージェントとあいまい照合する（双方向の部分一致）。"""
        needle = role.strip().lower()
        if not needle:
            return None
        for agent in self.agents:
            candidate = agent.role.strip().lower()
            if candidate and (candidate in needle or needle in candidate):
                return agent
        return None

    def set_active_agent(self, role: str) -> bool:
        """アクティブエージェントを切り替える。

        Returns:
            切り替わった場合 True（現在と同じ役割なら False）
        """
        if not role or role == self.active_agent_role:
            return False

        self.active_agent_role = role
        matched = self.find_agent(role)
        if matched is not None:
            self.highlighted_agent = matched
            self._highlight_until = self._clock() + self.settings.agent_highlight_seconds
        logger.info(f"アクティブエージェントを更新: {role}")
        self.notifier.emit(
            ActiveAgentChanged(role=role, matched_role=matched.role if matched else None)
        )
        return True

    @property
    def is_highlighting(self) -> bool:
        """ハイライト表示期間中かどうか。"""
        return self.highlighted_agent is not None and self._clock() < self._highlight_until

    def detect_agent(self, text: str) -> str | None:
        """テキストから発言者を推定し、アクティブエージェントに反映する。"""
        role = detect_agent_role(strip_control_codes(text))
        if role is not None:
            self.set_active_agent(role)
        return role

    def dispatch(self, frame: InboundFrame) -> None:
        """受信フレームを進捗状態に反映する。"""
        if isinstance(frame, TaskStatusFrame):
            self._handle_task_status(frame)
        elif isinstance(frame, (ChatFrame, UpdateFrame, ResultFrame)):
            self._handle_content(frame)

    def _handle_task_status(self, frame: TaskStatusFrame) -> None:
        if frame.status == TaskStatus.IN_PROGRESS:
            if self.set_current_task(frame.task_id) and frame.agent_role:
                self.set_active_agent(frame.agent_role)
        elif frame.status == TaskStatus.COMPLETED:
            self.complete_task(frame.task_id)
        else:
            self.update_task_status(frame.task_id, frame.status)

    def _handle_content(self, frame: ContentFrame) -> None:
        text = frame.text
        if not text:
            return

        self.detect_agent(text)

        if isinstance(frame, ResultFrame) and has_final_marker(text):
            logger.info("最終結果を受信したため全タスクを完了にします")
            self.complete_all_tasks()
            return

        task_id = self.detect_task_from_text(text)
        if task_id is not None:
            self._apply_detected_task(task_id, text)

    # ========== カスタム設定 ==========

    def build_custom_config(self) -> dict[str, Any] | None:
        """現在のエージェント・タスク一覧を送信用の辞書にする。

        Returns:
            送信用の設定、または送るものがない場合は None
        """
        if not self.agents and not self.tasks:
            return None
        return {
            "agents": [agent.model_dump(mode="json") for agent in self.agents],
            "tasks": [task.to_template() for task in self.tasks],
        }

    async def save_custom_config(self, transmit: Transmit) -> bool:
        """カスタム設定を送信処理に渡す。

        Args:
            transmit: フレームを送信する関数（同期・非同期どちらも可）

        Returns:
            送信できる設定があった場合 True
        """
        config = self.build_custom_config()
        if config is None:
            logger.warning("送信できる crew 設定がありません")
            return False

        result = transmit(build_custom_config_frame(config))
        if inspect.isawaitable(result):
            result = await result
        if not result:
            logger.warning("カスタム設定の送信に失敗しました")
        return True

    def snapshot(self) -> dict[str, Any]:
        """進捗状態を JSON 互換の辞書で返す。"""
        return {
            "tasks": [task.model_dump(mode="json") for task in self.tasks],
            "current_task_id": self.current_task_id,
            "progress": self.task_progress,
            "config_source": self.config_source,
        }
