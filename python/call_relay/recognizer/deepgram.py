"""
Deepgram live-transcription client.

One WebSocket per call track: binary audio frames out, JSON results in.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import RelayConfig
from ..core.models import RecognizerError, RecognizerEvent

logger = logging.getLogger("relay.deepgram")

CLOSE_STREAM = json.dumps({"type": "CloseStream"})


def build_listen_url(base_url: str, params: Dict[str, str]) -> str:
    """Append recognizer query parameters to the listen endpoint."""
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(params)}"


def parse_result(message: str) -> Optional[RecognizerEvent]:
    """
    Parse one Deepgram message.

    Returns:
        RecognizerEvent for ``Results`` messages, None for other message
        types (Metadata, SpeechStarted, UtteranceEnd).

    Raises:
        RecognizerError: message is not valid JSON or not an object
    """
    try:
        response = json.loads(message)
    except (TypeError, ValueError) as e:
        raise RecognizerError(f"invalid recognizer JSON: {e}") from e

    if not isinstance(response, dict):
        raise RecognizerError("recognizer message is not an object")

    result_type = response.get("type", "")
    if result_type != "Results":
        logger.debug(f"Skipping recognizer message type '{result_type}'")
        return None

    alternatives = (response.get("channel") or {}).get("alternatives") or []
    if not alternatives or not isinstance(alternatives[0], dict):
        return None

    best = alternatives[0]
    confidence = best.get("confidence")
    return RecognizerEvent(
        result_type=result_type,
        is_final=bool(response.get("is_final", False)),
        transcript=best.get("transcript") or "",
        confidence=float(confidence) if confidence is not None else None,
    )


class DeepgramStream:
    """An open Deepgram live connection for one track."""

    def __init__(self, ws, label: str):
        self._ws = ws
        self.label = label
        self._closed = False

    async def send_audio(self, frame: bytes) -> None:
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise RecognizerError(f"recognizer connection closed: {e}") from e

    async def events(self) -> AsyncIterator[RecognizerEvent]:
        """
        Yield parsed results until the connection closes.

        Malformed messages are logged and skipped. An abnormal close
        surfaces as RecognizerError; a clean close ends the iterator.
        """
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    continue
                try:
                    event = parse_result(message)
                except RecognizerError as e:
                    logger.warning(f"[{self.label}] Dropped recognizer message: {e}")
                    continue
                if event is not None:
                    yield event
        except ConnectionClosed as e:
            raise RecognizerError(f"recognizer connection lost: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.send(CLOSE_STREAM)
        except (ConnectionClosed, OSError):
            pass
        try:
            await self._ws.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug(f"[{self.label}] Error closing recognizer socket: {e}")
        logger.info(f"Recognizer connection closed for {self.label}")


class DeepgramClient:
    """Opens DeepgramStream connections with the configured parameters."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "wss://api.deepgram.com/v1/listen",
        params: Optional[Dict[str, str]] = None,
        open_timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.url = build_listen_url(base_url, params or {})
        self.open_timeout = open_timeout

    @classmethod
    def from_config(cls, config: RelayConfig) -> "DeepgramClient":
        return cls(
            api_key=config.deepgram_api_key,
            base_url=config.deepgram_url,
            params=config.deepgram_query(),
        )

    async def connect(self, label: str) -> DeepgramStream:
        """
        Open a live connection.

        Raises:
            RecognizerError: handshake failed
        """
        headers = {"Authorization": f"Token {self.api_key}"}
        try:
            ws = await websockets.connect(
                self.url,
                additional_headers=headers,
                open_timeout=self.open_timeout,
            )
        except (OSError, asyncio.TimeoutError, websockets.InvalidHandshake) as e:
            raise RecognizerError(f"connect failed: {e}") from e

        logger.info(f"Connected to recognizer for {label}")
        return DeepgramStream(ws, label)
