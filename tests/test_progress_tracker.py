"""ProgressTracker のテスト。"""

from unittest.mock import AsyncMock, MagicMock

import httpx

from crew_monitor.errors import CrewConfigError
from crew_monitor.managers.crew_config_client import CrewConfigClient
from crew_monitor.managers.progress_tracker import ProgressTracker
from crew_monitor.models.crew import CrewConfig, TaskStatus
from crew_monitor.models.events import ActiveAgentChanged, TaskStatusChanged
from crew_monitor.models.frame import ChatFrame, ResultFrame, TaskStatusFrame, UpdateFrame


def statuses(tracker):
    return {task.id: task.status for task in tracker.tasks}


def make_client(config=None, error=None):
    client = MagicMock()
    client.fetch_crew_info = AsyncMock(return_value=config, side_effect=error)
    return client


class TestDefaultConfig:
    """既定構成のテスト。"""

    def test_initial_state(self, tracker):
        """既定の 5 タスク・4 エージェントで開始することをテスト。"""
        assert [t.id for t in tracker.tasks] == [
            "ideation",
            "tiktok",
            "market",
            "tech",
            "refinement",
        ]
        assert len(tracker.agents) == 4
        assert all(t.status == TaskStatus.PENDING for t in tracker.tasks)
        assert tracker.current_task_id is None
        assert tracker.config_source == "default"

    async def test_load_without_client(self, tracker):
        """設定クライアントがない場合は既定構成になることをテスト。"""
        assert await tracker.load_config() is False
        assert len(tracker.tasks) == 5


class TestLoadConfig:
    """load_config のテスト。"""

    async def test_fetch_failure_falls_back(self, settings, notifier):
        """取得失敗時に既定の 5 タスク・4 エージェントになることをテスト。"""
        client = make_client(error=CrewConfigError("connection refused"))
        tracker = ProgressTracker(settings, notifier, config_client=client)

        assert await tracker.load_config("product_ideation") is False
        assert len(tracker.tasks) == 5
        assert len(tracker.agents) == 4
        assert tracker.config_source == "default"
        client.fetch_crew_info.assert_awaited_once_with("product_ideation")

    async def test_invalid_crew_type_falls_back(self, settings, notifier):
        """URL として不正な crew 種類でも既定構成にフォールバックすることをテスト。"""
        client = CrewConfigClient(
            settings, transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        tracker = ProgressTracker(settings, notifier, config_client=client)

        assert await tracker.load_config("bad\x00type") is False
        assert len(tracker.tasks) == 5
        assert tracker.config_source == "default"

    async def test_empty_lists_fall_back(self, settings, notifier):
        """タスクが空の構成は既定構成にフォールバックすることをテスト。"""
        config = CrewConfig.model_validate({"agents": [{"role": "产品经理"}], "tasks": []})
        tracker = ProgressTracker(settings, notifier, config_client=make_client(config))

        assert await tracker.load_config() is False
        assert len(tracker.tasks) == 5

    async def test_remote_config_applied(self, settings, notifier):
        """取得した構成に位置順の ID・アイコンが割り当てられることをテスト。"""
        long_line = "这是一个非常长的任务描述文本用于验证名称截断的行为是否正确"
        tasks = [{"description": f"任务 {i}"} for i in range(1, 6)]
        tasks[0]["description"] = f"\n{long_line}\n第二行"
        tasks.append({"description": "", "enabled": None})
        config = CrewConfig.model_validate(
            {
                "agents": [{"role": "设计师", "model": "gpt-4o"}],
                "tasks": tasks,
                "llm_models": {"default": "gpt-4o"},
            }
        )
        tracker = ProgressTracker(settings, notifier, config_client=make_client(config))

        assert await tracker.load_config() is True
        assert tracker.config_source == "remote"
        assert [t.id for t in tracker.tasks] == [
            "ideation",
            "tiktok",
            "market",
            "tech",
            "refinement",
            "task-6",
        ]
        assert [t.icon for t in tracker.tasks] == ["💡", "📱", "📊", "⚙️", "✨", "💡"]
        assert tracker.tasks[0].name == long_line[:20] + "..."
        assert tracker.tasks[1].name == "任务 2"
        assert tracker.tasks[5].name == "Task 6"
        assert tracker.tasks[5].enabled is True
        assert tracker.agents[0].llm == "gpt-4o"
        assert tracker.llm_models == {"default": "gpt-4o"}

    async def test_reload_resets_pointer(self, settings, notifier):
        """再読み込みで現在のタスクとアクティブエージェントがクリアされることをテスト。"""
        tracker = ProgressTracker(settings, notifier)
        tracker.set_current_task("market")
        tracker.set_active_agent("市场研究员")

        await tracker.load_config()

        assert tracker.current_task_id is None
        assert tracker.active_agent_role is None
        assert all(t.status == TaskStatus.PENDING for t in tracker.tasks)


class TestTaskStateMachine:
    """タスクステータス遷移のテスト。"""

    def test_single_in_progress(self, tracker):
        """進行中のタスクは常に 1 件であることをテスト。"""
        tracker.set_current_task("market")
        tracker.set_current_task("tech")

        current = statuses(tracker)
        assert current["market"] == TaskStatus.COMPLETED
        assert current["tech"] == TaskStatus.IN_PROGRESS
        assert list(current.values()).count(TaskStatus.IN_PROGRESS) == 1
        assert tracker.current_task_id == "tech"

    def test_completed_task_not_restarted(self, tracker):
        """完了済みタスクは進行中に戻らないことをテスト。"""
        tracker.complete_task("market")
        assert tracker.set_current_task("market") is False
        assert tracker.get_task("market").status == TaskStatus.COMPLETED

    def test_regression_refused(self, tracker):
        """pending への逆行が拒否されることをテスト。"""
        tracker.complete_task("ideation")
        assert tracker.update_task_status("ideation", "pending") is False
        assert tracker.get_task("ideation").status == TaskStatus.COMPLETED

    def test_unknown_task(self, tracker):
        """未知のタスクは False を返すことをテスト。"""
        assert tracker.update_task_status("unknown", TaskStatus.IN_PROGRESS) is False
        assert tracker.complete_task("unknown") is False

    def test_complete_current_advances(self, tracker):
        """現在のタスクを完了すると次の pending タスクへ進むことをテスト。"""
        tracker.set_current_task("market")
        tracker.complete_task("market")

        assert tracker.current_task_id == "tech"
        assert tracker.get_task("tech").status == TaskStatus.IN_PROGRESS

    def test_advance_skips_disabled_and_wraps(self, tracker):
        """無効タスクを飛ばし、末尾の次は先頭へ戻ることをテスト。"""
        tracker.set_task_enabled("refinement", False)
        tracker.set_current_task("tech")
        tracker.complete_task("tech")

        assert tracker.current_task_id == "ideation"

    def test_advance_clears_pointer_when_done(self, tracker):
        """残りがない場合は現在のタスクがクリアされることをテスト。"""
        for task_id in ("ideation", "tiktok", "market", "tech"):
            tracker.complete_task(task_id)
        tracker.set_current_task("refinement")
        tracker.complete_task("refinement")

        assert tracker.current_task_id is None
        assert tracker.task_progress == 100

    def test_reset_progress(self, tracker):
        """リセットで全タスクが pending に戻ることをテスト。"""
        tracker.set_current_task("market")
        tracker.complete_all_tasks()
        tracker.reset_progress()

        assert all(t.status == TaskStatus.PENDING for t in tracker.tasks)
        assert tracker.current_task_id is None


class TestTaskProgress:
    """task_progress のテスト。"""

    def test_two_of_five(self, tracker):
        """5 件中 2 件完了で 40 になることをテスト。"""
        tracker.complete_task("ideation")
        tracker.complete_task("tiktok")
        assert tracker.task_progress == 40

    def test_disabled_excluded(self, tracker):
        """無効タスクは計算から除外されることをテスト。"""
        tracker.set_task_enabled("tech", False)
        tracker.set_task_enabled("refinement", False)
        tracker.complete_task("ideation")
        assert tracker.task_progress == 33

    def test_all_disabled(self, tracker):
        """有効タスクがない場合は 0 になることをテスト。"""
        for task in tracker.tasks:
            tracker.set_task_enabled(task.id, False)
        assert tracker.task_progress == 0


class TestContentInference:
    """本文からの推論のテスト。"""

    def test_update_sets_market_in_progress(self, tracker):
        """市場研究の本文で market が進行中になることをテスト。"""
        tracker.dispatch(UpdateFrame(content="开始进行市场研究分析"))

        assert tracker.get_task("market").status == TaskStatus.IN_PROGRESS
        assert tracker.current_task_id == "market"

    def test_final_result_completes_all(self, tracker):
        """最終結果で有効な全タスクが完了になることをテスト。"""
        tracker.set_task_enabled("tiktok", False)
        tracker.dispatch(UpdateFrame(content="开始进行市场研究分析"))
        tracker.dispatch(ResultFrame(content="最终产品方案已完成"))

        current = statuses(tracker)
        assert current["tiktok"] == TaskStatus.PENDING
        assert all(
            status == TaskStatus.COMPLETED
            for task_id, status in current.items()
            if task_id != "tiktok"
        )
        assert tracker.current_task_id is None
        assert tracker.task_progress == 100

    def test_final_marker_in_update_not_final(self, tracker):
        """update フレームの最終マーカーは全完了にしないことをテスト。"""
        tracker.dispatch(UpdateFrame(content="最终产品方案草稿"))
        assert tracker.task_progress == 0
        assert tracker.current_task_id == "refinement"

    def test_completion_marker_completes_task(self, tracker):
        """完了マーカーで該当タスクが完了し次へ進むことをテスト。"""
        tracker.dispatch(ChatFrame(content="开始市场研究"))
        tracker.dispatch(ChatFrame(content="市场研究 done"))

        assert tracker.get_task("market").status == TaskStatus.COMPLETED
        assert tracker.current_task_id == "tech"

    def test_first_declared_category_wins(self, tracker):
        """複数カテゴリに一致した場合は先に宣言されたものを採用することをテスト。"""
        tracker.dispatch(UpdateFrame(content="结合TikTok平台分析做市场研究"))
        assert tracker.current_task_id == "tiktok"

    def test_system_origin_ignored(self, tracker):
        """システム発信のテキストは推論対象外であることをテスト。"""
        tracker.dispatch(UpdateFrame(content="[系统]: 开始市场研究"))

        assert tracker.current_task_id is None
        assert tracker.active_agent_role is None

    def test_disabled_task_not_detected(self, tracker):
        """無効タスクは推論で現在のタスクにならないことをテスト。"""
        tracker.set_task_enabled("market", False)
        tracker.dispatch(UpdateFrame(content="开始进行市场研究分析"))

        assert tracker.current_task_id is None
        assert tracker.get_task("market").status == TaskStatus.PENDING

    def test_control_codes_ignored_for_agent(self, tracker):
        """制御コード付きの Agent タグから役割名を取り出せることをテスト。"""
        tracker.dispatch(ChatFrame(content="\x1b[1m\x1b[95m# Agent:\x1b[00m \x1b[92m技术专家\x1b[00m"))
        assert tracker.active_agent_role == "技术专家"


class TestTaskStatusFrames:
    """task_status フレームのテスト。"""

    def test_in_progress_with_agent_hint(self, tracker):
        """担当エージェントのヒントでアクティブエージェントが切り替わることをテスト。"""
        tracker.dispatch(
            TaskStatusFrame(task_id="tech", status="in_progress", agent_role="技术专家")
        )

        assert tracker.current_task_id == "tech"
        assert tracker.active_agent_role == "技术专家"

    def test_completed(self, tracker):
        """completed フレームでタスクが完了することをテスト。"""
        tracker.dispatch(TaskStatusFrame(task_id="ideation", status="in-progress"))
        tracker.dispatch(TaskStatusFrame(task_id="ideation", status="completed"))

        assert tracker.get_task("ideation").status == TaskStatus.COMPLETED
        assert tracker.current_task_id == "tiktok"

    def test_pending_cannot_regress(self, tracker):
        """pending フレームで完了タスクが戻らないことをテスト。"""
        tracker.dispatch(TaskStatusFrame(task_id="market", status="completed"))
        tracker.dispatch(TaskStatusFrame(task_id="market", status="pending"))

        assert tracker.get_task("market").status == TaskStatus.COMPLETED


class TestActiveAgent:
    """アクティブエージェントのテスト。"""

    def test_agent_tag(self, tracker):
        """Agent タグから役割名が検出されることをテスト。"""
        tracker.dispatch(UpdateFrame(content="Agent: 产品经理\n开始工作"))

        assert tracker.active_agent_role == "产品经理"
        assert tracker.highlighted_agent.role == "产品经理"

    def test_fuzzy_highlight_expires(self, settings, notifier):
        """部分一致でハイライトされ、一定時間後に解除されることをテスト。"""
        now = [100.0]
        tracker = ProgressTracker(settings, notifier, clock=lambda: now[0])

        assert tracker.set_active_agent("经理") is True
        assert tracker.highlighted_agent.role == "产品经理"
        assert tracker.is_highlighting is True

        now[0] += settings.agent_highlight_seconds + 0.5
        assert tracker.is_highlighting is False
        assert tracker.active_agent_role == "经理"

    def test_unknown_role_not_highlighted(self, tracker):
        """既知エージェントと一致しない役割はハイライトされないことをテスト。"""
        assert tracker.set_active_agent("UI设计顾问") is True
        assert tracker.active_agent_role == "UI设计顾问"
        assert tracker.highlighted_agent is None

    def test_same_role_not_reemitted(self, tracker, notifier):
        """同じ役割への切り替えは通知されないことをテスト。"""
        events = []
        notifier.subscribe(ActiveAgentChanged, events.append)

        tracker.set_active_agent("技术专家")
        assert tracker.set_active_agent("技术专家") is False
        assert len(events) == 1
        assert events[0].matched_role == "技术专家"


class TestEvents:
    """イベント通知のテスト。"""

    def test_status_change_events(self, tracker, notifier):
        """ステータス変化がイベントとして通知されることをテスト。"""
        events = []
        notifier.subscribe(TaskStatusChanged, events.append)

        tracker.set_current_task("market")
        tracker.set_current_task("tech")

        assert [(e.task_id, e.old_status, e.new_status) for e in events] == [
            ("market", TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
            ("market", TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
            ("tech", TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
        ]

    def test_reset_emits_events(self, tracker, notifier):
        """リセットで pending に戻ったタスクが通知されることをテスト。"""
        tracker.set_current_task("market")
        tracker.complete_task("market")

        events = []
        notifier.subscribe(TaskStatusChanged, events.append)
        tracker.reset_progress()

        assert [(e.task_id, e.old_status, e.new_status) for e in events] == [
            ("market", TaskStatus.COMPLETED, TaskStatus.PENDING),
            ("tech", TaskStatus.IN_PROGRESS, TaskStatus.PENDING),
        ]


class TestCustomConfig:
    """カスタム設定送信のテスト。"""

    def test_build_custom_config(self, tracker):
        """エージェントとタスクが送信用に変換されることをテスト。"""
        config = tracker.build_custom_config()

        assert len(config["agents"]) == 4
        assert config["agents"][0]["role"] == "产品经理"
        assert len(config["tasks"]) == 5
        assert set(config["tasks"][0]) == {"description", "expected_output", "agent_role", "enabled"}

    async def test_save_with_sync_transmit(self, tracker):
        """同期の送信関数で送信されることをテスト。"""
        sent = []

        def transmit(frame):
            sent.append(frame)
            return True

        assert await tracker.save_custom_config(transmit) is True
        assert sent[0]["type"] == "set_custom_config"

    async def test_save_with_async_transmit(self, tracker):
        """非同期の送信関数で送信されることをテスト。"""
        transmit = AsyncMock(return_value=False)

        assert await tracker.save_custom_config(transmit) is True
        transmit.assert_awaited_once()

    async def test_nothing_to_save(self, tracker):
        """送るものがない場合は送信しないことをテスト。"""
        tracker.agents = []
        tracker.tasks = []
        transmit = MagicMock()

        assert await tracker.save_custom_config(transmit) is False
        transmit.assert_not_called()
