"""Recognizer boundary."""
from .base import RecognizerClient, RecognizerStream
from .deepgram import DeepgramClient, DeepgramStream, build_listen_url, parse_result

__all__ = [
    "RecognizerClient",
    "RecognizerStream",
    "DeepgramClient",
    "DeepgramStream",
    "build_listen_url",
    "parse_result",
]
