"""Shared types for the relay core."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class RelayError(Exception):
    """Base class for relay errors."""


class MessageParseError(RelayError):
    """Inbound transport message could not be understood."""


class RecognizerError(RelayError):
    """Recognizer connection failed or misbehaved."""


class Track(Enum):
    """Audio leg of a call."""
    CALLER = "caller"
    CALLEE = "callee"
    UNKNOWN = "unknown"

    @classmethod
    def from_stream(cls, raw: Optional[str]) -> "Track":
        """Map a media-stream track name (inbound_track/outbound_track) to a Track."""
        if not raw:
            return cls.UNKNOWN
        value = raw.strip().lower()
        if value in ("inbound_track", "inbound", "caller"):
            return cls.CALLER
        if value in ("outbound_track", "outbound", "callee"):
            return cls.CALLEE
        return cls.UNKNOWN


def track_label(track: Track, raw: Optional[str] = None) -> str:
    """Log label for a track: CALLER, CALLEE or UNKNOWN-<raw>."""
    if track is Track.UNKNOWN:
        return f"UNKNOWN-{raw or 'unknown'}"
    return track.name


class SessionState(Enum):
    """CallSession lifecycle."""
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPED = "stopped"


class ChannelState(Enum):
    """AudioChannel lifecycle."""
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class RecognizerEvent:
    """One transcript fragment from the recognizer."""
    result_type: str
    is_final: bool
    transcript: str
    confidence: Optional[float] = None


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


EVENT_INTERIM = "interim"
EVENT_TURN = "turn"
EVENT_CALL_ENDED = "call_ended"


@dataclass
class TranscriptEvent:
    """Event delivered to subscribers."""

    type: str
    call_id: str
    speaker: Optional[str] = None
    text: Optional[str] = None
    confidence: Optional[float] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, object]:
        """Convert to the subscriber wire shape."""
        result: Dict[str, object] = {
            "type": self.type,
            "callId": self.call_id,
            "speaker": self.speaker,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.confidence is not None:
            result["confidence"] = round(self.confidence, 4)
        return result

    @classmethod
    def call_ended(cls, call_id: str) -> "TranscriptEvent":
        return cls(type=EVENT_CALL_ENDED, call_id=call_id)
