"""Media-stream and subscriber transport."""
from .messages import (
    MediaMessage,
    StartMessage,
    StopMessage,
    SubscriberCommand,
    parse_media_message,
    parse_subscriber_message,
)
from .server import RelayServer

__all__ = [
    "MediaMessage",
    "StartMessage",
    "StopMessage",
    "SubscriberCommand",
    "parse_media_message",
    "parse_subscriber_message",
    "RelayServer",
]
