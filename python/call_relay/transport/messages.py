"""
Inbound message parsing.

Media-stream connections speak the Twilio Media Streams JSON protocol
(connected / start / media / mark / stop). Subscriber connections send
register / unregister commands. Anything malformed raises
MessageParseError; the connection handler logs and drops it.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.models import MessageParseError, Track

IGNORED_EVENTS = frozenset({"connected", "mark", "dtmf"})


@dataclass
class StartMessage:
    call_id: str
    track: Track
    raw_track: str
    stream_sid: Optional[str] = None


@dataclass
class MediaMessage:
    payload: bytes


@dataclass
class StopMessage:
    pass


MediaStreamMessage = Union[StartMessage, MediaMessage, StopMessage]


def _load_object(raw: Union[str, bytes]) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MessageParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MessageParseError("message is not a JSON object")
    return data


def _start_track(start: Dict[str, Any]) -> str:
    """Track name from mediaFormat.track, else a single-entry tracks list."""
    media_format = start.get("mediaFormat") or {}
    if isinstance(media_format, dict) and media_format.get("track"):
        return str(media_format["track"])
    tracks = start.get("tracks")
    if isinstance(tracks, list) and len(tracks) == 1:
        return str(tracks[0])
    return "unknown"


def parse_media_message(raw: Union[str, bytes]) -> Optional[MediaStreamMessage]:
    """
    Parse one media-stream message.

    Returns:
        StartMessage, MediaMessage or StopMessage; None for events the
        relay does not act on (connected, mark, dtmf).

    Raises:
        MessageParseError: malformed message
    """
    data = _load_object(raw)
    event = data.get("event")

    if event in IGNORED_EVENTS:
        return None

    if event == "start":
        start = data.get("start")
        if not isinstance(start, dict):
            raise MessageParseError("start event without start block")
        call_id = start.get("callSid")
        if not call_id:
            raise MessageParseError("start event without callSid")
        raw_track = _start_track(start)
        return StartMessage(
            call_id=str(call_id),
            track=Track.from_stream(raw_track),
            raw_track=raw_track,
            stream_sid=start.get("streamSid") or data.get("streamSid"),
        )

    if event == "media":
        media = data.get("media")
        if not isinstance(media, dict) or not isinstance(media.get("payload"), str):
            raise MessageParseError("media event without payload")
        try:
            payload = base64.b64decode(media["payload"], validate=True)
        except (binascii.Error, ValueError) as e:
            raise MessageParseError(f"media payload is not base64: {e}") from e
        return MediaMessage(payload=payload)

    if event == "stop":
        return StopMessage()

    raise MessageParseError(f"unknown event '{event}'")


REGISTER = "register"
UNREGISTER = "unregister"


@dataclass
class SubscriberCommand:
    action: str
    call_id: str


def parse_subscriber_message(raw: Union[str, bytes]) -> SubscriberCommand:
    """
    Parse a subscriber command: {"type": "register", "callId": "..."}.

    Raises:
        MessageParseError: malformed command
    """
    data = _load_object(raw)
    action = data.get("type") or data.get("event")
    if action not in (REGISTER, UNREGISTER):
        raise MessageParseError(f"unknown subscriber command '{action}'")

    call_id = data.get("callId") or data.get("call_id")
    if not call_id or not isinstance(call_id, (str, int)):
        raise MessageParseError(f"{action} without callId")
    return SubscriberCommand(action=action, call_id=str(call_id))
