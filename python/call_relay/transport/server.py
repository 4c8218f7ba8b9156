"""
WebSocket server for media streams and transcript subscribers.

Routes by request path:
- media path: one connection per call track (Twilio Media Streams)
- subscribe path: one connection per subscriber
"""

import json
import logging
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ..config import RelayConfig
from ..core.call_session import CallSession
from ..core.models import MessageParseError
from ..relay import TranscriptRelay
from .messages import (
    REGISTER,
    MediaMessage,
    StartMessage,
    StopMessage,
    parse_media_message,
    parse_subscriber_message,
)

logger = logging.getLogger("relay.server")

POLICY_VIOLATION = 1008


class RelayServer:
    """Accepts media-stream and subscriber WebSocket connections."""

    def __init__(self, relay: TranscriptRelay, config: Optional[RelayConfig] = None):
        self.relay = relay
        self.config = config or relay.config
        self._server: Optional[Server] = None
        self.media_connections = 0
        self.subscriber_connections = 0

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        self._server = await serve(self._route, self.config.host, self.config.port)
        logger.info(f"WebSocket server listening on port {self.config.port}")
        logger.info("Ready to handle dual stream transcription:")
        logger.info("   CALLER (inbound_track) - Real-time caller audio")
        logger.info("   CALLEE (outbound_track) - Real-time callee audio")
        logger.info(
            f"   Media path: {self.config.media_path}, "
            f"subscribe path: {self.config.subscribe_path}"
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("WebSocket server stopped")

    async def _route(self, connection: ServerConnection) -> None:
        path = connection.request.path.split("?", 1)[0]
        if path == self.config.media_path:
            await self.handle_media_stream(connection)
        elif path == self.config.subscribe_path:
            await self.handle_subscriber(connection)
        else:
            logger.warning(f"Rejecting connection on unknown path '{path}'")
            await connection.close(POLICY_VIOLATION, "unknown path")

    async def handle_media_stream(self, connection) -> None:
        """Drive one call track from start to transport close."""
        self.media_connections += 1
        session: Optional[CallSession] = None
        logger.info("New media stream connected")

        try:
            async for message in connection:
                try:
                    msg = parse_media_message(message)
                except MessageParseError as e:
                    logger.warning(f"Dropped malformed media-stream message: {e}")
                    continue

                if isinstance(msg, StartMessage):
                    if session is not None and session.key != (msg.call_id, msg.track):
                        await session.stop("restarted with a new call/track")
                    session = await self.relay.start_session(
                        msg.call_id, msg.track, msg.raw_track
                    )
                elif isinstance(msg, MediaMessage):
                    if session is None:
                        logger.debug("Media before start, dropping frame")
                        continue
                    await session.handle_media(msg.payload)
                elif isinstance(msg, StopMessage):
                    if session is not None:
                        await session.stop("stop message")
        except ConnectionClosed as e:
            logger.warning(f"Media stream connection error: {e}")
        finally:
            self.media_connections -= 1
            if session is not None:
                await session.stop("transport closed")
                logger.info(
                    f"Media stream disconnected - Call: {session.call_id}, "
                    f"Track: {session.raw_track}"
                )
            else:
                logger.info("Media stream disconnected before start")

    async def handle_subscriber(self, connection) -> None:
        """Serve register/unregister commands until the subscriber leaves."""
        self.subscriber_connections += 1
        broadcast = self.relay.broadcast

        try:
            async for message in connection:
                try:
                    command = parse_subscriber_message(message)
                except MessageParseError as e:
                    logger.warning(f"Dropped malformed subscriber message: {e}")
                    continue

                if command.action == REGISTER:
                    await broadcast.subscribe(command.call_id, connection)
                    await connection.send(
                        json.dumps({"type": "registered", "callId": command.call_id})
                    )
                else:
                    await broadcast.unsubscribe(command.call_id, connection)
        except ConnectionClosed as e:
            logger.debug(f"Subscriber connection closed: {e}")
        finally:
            self.subscriber_connections -= 1
            removed = await broadcast.unsubscribe_all(connection)
            logger.info(f"Subscriber disconnected ({removed} interest(s) released)")

    def get_stats(self) -> dict:
        return {
            "serving": self.is_serving,
            "media_connections": self.media_connections,
            "subscriber_connections": self.subscriber_connections,
        }
