"""crew 構成（エージェント・タスク）モデル。"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    """タスクのステータス。

    pending → in-progress → completed の順にのみ遷移する。
    """

    PENDING = "pending"  # 未着手
    IN_PROGRESS = "in-progress"  # 進行中
    COMPLETED = "completed"  # 完了


# ステータスの順位（逆行判定用）
TASK_STATUS_ORDER: dict[TaskStatus, int] = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
}


def is_forward_transition(old: TaskStatus, new: TaskStatus) -> bool:
    """old → new が逆行しない遷移かどうかを判定する。"""
    return TASK_STATUS_ORDER[TaskStatus(new)] >= TASK_STATUS_ORDER[TaskStatus(old)]


class Agent(BaseModel):
    """crew に参加するエージェントの定義。"""

    role: str = Field(..., description="エージェントの役割名")
    goal: str = Field(default="", description="目標")
    backstory: str = Field(default="", description="背景設定")
    llm: str | None = Field(
        default=None,
        validation_alias=AliasChoices("llm", "model"),
        description="使用するモデル識別子",
    )
    tools: list[str] = Field(default_factory=list, description="利用ツール一覧")
    enabled: bool = Field(default=True, description="有効フラグ")

    @field_validator("tools", mode="before")
    @classmethod
    def normalize_tools(cls, value):
        """ツール定義を名前の文字列リストに揃える。"""
        if value is None:
            return []
        normalized = []
        for item in value:
            if isinstance(item, dict):
                normalized.append(str(item.get("name", "")))
            else:
                normalized.append(str(item))
        return [name for name in normalized if name]


class TaskTemplate(BaseModel):
    """設定サービスが返すタスク定義。"""

    description: str = Field(..., description="タスク説明")
    expected_output: str = Field(default="", description="期待する成果物")
    agent_role: str | None = Field(default=None, description="担当エージェントの役割")
    enabled: bool = Field(default=True, description="有効フラグ")

    @field_validator("enabled", mode="before")
    @classmethod
    def default_enabled(cls, value):
        """null を有効扱いにする。"""
        return True if value is None else value


class Task(BaseModel):
    """パイプラインのステージ。"""

    id: str = Field(..., description="タスクID")
    name: str = Field(..., description="表示名")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="ステータス")
    icon: str = Field(default="", description="アイコン")
    description: str = Field(default="", description="タスク説明")
    expected_output: str = Field(default="", description="期待する成果物")
    agent_role: str | None = Field(default=None, description="担当エージェントの役割")
    enabled: bool = Field(default=True, description="有効フラグ（無効タスクは進捗計算から除外）")

    def to_template(self) -> dict:
        """カスタム設定送信用の辞書に縮約する。"""
        return {
            "description": self.description,
            "expected_output": self.expected_output,
            "agent_role": self.agent_role,
            "enabled": self.enabled,
        }


class CrewConfig(BaseModel):
    """crew 構成の集約。"""

    agents: list[Agent] = Field(default_factory=list, description="エージェント一覧")
    tasks: list[TaskTemplate] = Field(default_factory=list, description="タスク定義一覧")
    llm_models: dict[str, str] = Field(default_factory=dict, description="モデル名マップ")

    @field_validator("agents", "tasks", "llm_models", mode="before")
    @classmethod
    def default_empty(cls, value, info):
        """null を空コレクションとして扱う。"""
        if value is None:
            return {} if info.field_name == "llm_models" else []
        return value
