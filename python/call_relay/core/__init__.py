"""Core relay components."""
from .models import (
    ChannelState,
    MessageParseError,
    RecognizerError,
    RecognizerEvent,
    RelayError,
    SessionState,
    Track,
    TranscriptEvent,
)
from .task_registry import TaskRegistry, safe_task, get_default_registry
from .audio_channel import AudioChannel
from .aggregator import TurnAggregator
from .registry import SessionRegistry
from .call_session import CallSession

__all__ = [
    "ChannelState",
    "MessageParseError",
    "RecognizerError",
    "RecognizerEvent",
    "RelayError",
    "SessionState",
    "Track",
    "TranscriptEvent",
    "TaskRegistry",
    "safe_task",
    "get_default_registry",
    "AudioChannel",
    "TurnAggregator",
    "SessionRegistry",
    "CallSession",
]
