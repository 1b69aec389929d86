"""設定モジュール。"""

from .crew_defaults import DEFAULT_TASK_ICONS, DEFAULT_TASK_IDS, default_agents, default_tasks
from .settings import Settings, get_settings

__all__ = [
    "DEFAULT_TASK_ICONS",
    "DEFAULT_TASK_IDS",
    "Settings",
    "default_agents",
    "default_tasks",
    "get_settings",
]
