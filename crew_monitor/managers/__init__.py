"""マネージャーモジュール。"""

from .crew_config_client import CrewConfigClient
from .event_notifier import EventNotifier
from .message_channel import MessageChannel
from .progress_tracker import ProgressTracker
from .transcript_manager import TranscriptManager

__all__ = [
    "CrewConfigClient",
    "EventNotifier",
    "MessageChannel",
    "ProgressTracker",
    "TranscriptManager",
]
