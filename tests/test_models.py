"""モデルのテスト。"""

import pytest
from pydantic import ValidationError

from crew_monitor.models.connection import ConnectionState, ConnectionStatus
from crew_monitor.models.crew import (
    Agent,
    CrewConfig,
    Task,
    TaskStatus,
    TaskTemplate,
    is_forward_transition,
)
from crew_monitor.models.frame import (
    ChatFrame,
    FrameType,
    HeartbeatAckFrame,
    RequestInputFrame,
    ResultFrame,
    TaskStatusFrame,
    build_custom_config_frame,
    build_heartbeat_frame,
    build_start_analysis_frame,
    build_user_input_frame,
    parse_frame,
)
from crew_monitor.models.message import ChatMessage, MessageRole


class TestTaskStatus:
    """TaskStatus のテスト。"""

    def test_values(self):
        """ステータスの値をテスト。"""
        assert TaskStatus.PENDING.value == "pending"
        assert TaskStatus.IN_PROGRESS.value == "in-progress"
        assert TaskStatus.COMPLETED.value == "completed"

    def test_forward_transition(self):
        """前進・同一遷移のみ許可されることをテスト。"""
        assert is_forward_transition(TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
        assert is_forward_transition(TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)
        assert is_forward_transition(TaskStatus.COMPLETED, TaskStatus.COMPLETED)
        assert not is_forward_transition(TaskStatus.COMPLETED, TaskStatus.PENDING)
        assert not is_forward_transition(TaskStatus.IN_PROGRESS, TaskStatus.PENDING)


class TestCrewModels:
    """Agent / TaskTemplate / CrewConfig のテスト。"""

    def test_agent_model_alias(self):
        """model キーが llm として読み込まれることをテスト。"""
        agent = Agent.model_validate({"role": "技术专家", "model": "gpt-4o"})
        assert agent.llm == "gpt-4o"
        assert agent.enabled is True

    def test_agent_tools_normalized(self):
        """ツール定義が名前のリストに揃えられることをテスト。"""
        agent = Agent.model_validate(
            {"role": "市场研究员", "tools": [{"name": "search"}, "scrape", {"desc": "x"}]}
        )
        assert agent.tools == ["search", "scrape"]

    def test_template_enabled_none(self):
        """enabled が null の場合は有効扱いになることをテスト。"""
        template = TaskTemplate.model_validate({"description": "分析", "enabled": None})
        assert template.enabled is True

    def test_crew_config_null_collections(self):
        """null のコレクションが空として扱われることをテスト。"""
        config = CrewConfig.model_validate({"agents": None, "tasks": None, "llm_models": None})
        assert config.agents == []
        assert config.tasks == []
        assert config.llm_models == {}

    def test_task_to_template(self):
        """Task がカスタム設定用の辞書に縮約されることをテスト。"""
        task = Task(
            id="market",
            name="市场研究",
            status=TaskStatus.COMPLETED,
            description="进行市场研究",
            agent_role="市场研究员",
            enabled=False,
        )
        assert task.to_template() == {
            "description": "进行市场研究",
            "expected_output": "",
            "agent_role": "市场研究员",
            "enabled": False,
        }


class TestParseFrame:
    """parse_frame のテスト。"""

    def test_chat_frame(self):
        """chat フレームを解析できることをテスト。"""
        frame = parse_frame({"type": "chat", "content": "你好", "timestamp": 1700000000})
        assert isinstance(frame, ChatFrame)
        assert frame.text == "你好"

    def test_missing_content_is_empty_text(self):
        """content 欠落時は空文字列として扱われることをテスト。"""
        frame = parse_frame({"type": "result"})
        assert isinstance(frame, ResultFrame)
        assert frame.text == ""

    def test_task_status_normalized(self):
        """in_progress 表記が正規化されることをテスト。"""
        frame = parse_frame(
            {"type": "task_status", "task_id": "tech", "status": "IN_PROGRESS", "agent_role": "技术专家"}
        )
        assert isinstance(frame, TaskStatusFrame)
        assert frame.status == TaskStatus.IN_PROGRESS
        assert frame.agent_role == "技术专家"

    def test_request_input_null_options(self):
        """options が null の場合は空リストになることをテスト。"""
        frame = parse_frame({"type": "request_input", "question": "继续?", "options": None})
        assert isinstance(frame, RequestInputFrame)
        assert frame.options == []

    def test_request_input_null_question(self):
        """question が null の場合は空文字列になることをテスト。"""
        frame = parse_frame({"type": "request_input", "question": None, "options": ["是"]})
        assert isinstance(frame, RequestInputFrame)
        assert frame.question == ""
        assert frame.options == ["是"]

    def test_heartbeat_ack(self):
        """heartbeat_ack フレームを解析できることをテスト。"""
        frame = parse_frame({"type": "heartbeat_ack", "timestamp": 123})
        assert isinstance(frame, HeartbeatAckFrame)

    def test_unknown_type_rejected(self):
        """未知の type は ValidationError になることをテスト。"""
        with pytest.raises(ValidationError):
            parse_frame({"type": "telemetry", "content": "x"})

    def test_invalid_status_rejected(self):
        """不正なステータスは ValidationError になることをテスト。"""
        with pytest.raises(ValidationError):
            parse_frame({"type": "task_status", "task_id": "tech", "status": "paused"})


class TestFrameBuilders:
    """送信フレーム組み立てのテスト。"""

    def test_heartbeat(self):
        """heartbeat フレームがミリ秒タイムスタンプを持つことをテスト。"""
        frame = build_heartbeat_frame()
        assert frame["type"] == FrameType.HEARTBEAT.value
        assert isinstance(frame["timestamp"], int)
        assert frame["timestamp"] > 10**12

    def test_user_input(self):
        """user_input フレームをテスト。"""
        assert build_user_input_frame("继续") == {"type": "user_input", "content": "继续"}

    def test_start_analysis(self):
        """start_analysis フレームに crew_type が含まれることをテスト。"""
        assert build_start_analysis_frame("智能水杯", "product_ideation") == {
            "type": "start_analysis",
            "content": "智能水杯",
            "crew_type": "product_ideation",
        }

    def test_custom_config(self):
        """set_custom_config フレームをテスト。"""
        frame = build_custom_config_frame({"agents": [], "tasks": []})
        assert frame == {"type": "set_custom_config", "config": {"agents": [], "tasks": []}}


class TestMessageAndConnection:
    """ChatMessage / ConnectionState のテスト。"""

    def test_message_defaults(self):
        """メッセージの既定値をテスト。"""
        message = ChatMessage(content="内容", role=MessageRole.AGENT)
        assert message.id
        assert len(message.timestamp) == 8
        assert message.preserved is False

    def test_freeze(self):
        """freeze で確定し思考中フラグが解除されることをテスト。"""
        message = ChatMessage(content="内容", role=MessageRole.AGENT, thinking=True)
        message.freeze()
        assert message.preserved is True
        assert message.thinking is False

    def test_connection_state_default(self):
        """接続状態の既定値が disconnected であることをテスト。"""
        state = ConnectionState()
        assert state.status == ConnectionStatus.DISCONNECTED
        assert state.last_heartbeat is None
