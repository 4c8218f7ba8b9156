"""Call-track session: one media stream feeding one recognizer channel."""

import logging
from typing import TYPE_CHECKING, Optional

from ..config import DROP_OLDEST
from ..metrics import get_metrics
from .aggregator import TurnAggregator
from .audio_channel import AudioChannel
from .models import RecognizerEvent, SessionState, Track, track_label
from .task_registry import TaskRegistry

if TYPE_CHECKING:
    from ..broadcast import SubscriberBroadcast
    from ..recognizer.base import RecognizerClient
    from .registry import SessionRegistry

logger = logging.getLogger("relay.session")


class CallSession:
    """
    Lifecycle of one (call_id, track) pairing.

    STARTING -> STREAMING -> STOPPED. A failed recognizer channel does not
    stop the session; audio keeps being accepted (and discarded) until the
    media stream says stop or the transport closes.
    """

    def __init__(
        self,
        call_id: str,
        track: Track,
        registry: "SessionRegistry",
        broadcast: "SubscriberBroadcast",
        recognizer: "RecognizerClient",
        raw_track: Optional[str] = None,
        max_pending: int = 500,
        overflow_policy: str = DROP_OLDEST,
        tasks: Optional[TaskRegistry] = None,
    ):
        self.call_id = call_id
        self.track = track
        self.raw_track = raw_track or track.value
        self.label = track_label(track, raw_track)
        self.state = SessionState.STARTING

        self._registry = registry
        self._broadcast = broadcast
        self.aggregator: Optional[TurnAggregator] = None
        self.channel = AudioChannel(
            recognizer,
            label=f"{self.label}:{call_id}",
            on_event=self._on_recognizer_event,
            on_failed=self._on_channel_failed,
            on_ready=self._on_channel_ready,
            max_pending=max_pending,
            overflow_policy=overflow_policy,
            tasks=tasks,
        )
        self._opened = False

    @property
    def key(self):
        return (self.call_id, self.track)

    @property
    def speaker(self) -> str:
        return self.track.value

    async def start(self) -> None:
        """Register (replacing any prior session for the key) and open the channel."""
        await self._registry.register(self)
        self.aggregator = await self._registry.aggregator_for(self.call_id)
        if self.state is SessionState.STOPPED:
            # Stopped or superseded while registering
            return

        self._opened = True
        get_metrics().session_opened()
        self.channel.open()
        logger.info(f"Call started: {self.call_id} - Track: {self.raw_track} ({self.label})")

    async def handle_media(self, frame: bytes) -> None:
        if self.state is SessionState.STOPPED:
            return
        if self.state is SessionState.STARTING:
            self.state = SessionState.STREAMING
        await self.channel.send(frame)

    async def stop(self, reason: str = "stop") -> bool:
        """
        Tear down this track.

        Returns:
            True if this call retired the whole call (flushed the
            aggregator and announced call_ended).
        """
        if self.state is SessionState.STOPPED:
            return False
        self.state = SessionState.STOPPED

        await self.channel.close()
        if self._opened:
            get_metrics().session_closed()
        remaining = await self._registry.unregister(self.call_id, self.track, self)
        logger.info(f"Stream stopped for {self.call_id} - Track: {self.raw_track} ({reason})")

        if remaining:
            return False

        aggregator = await self._registry.retire_call(self.call_id)
        if aggregator is None:
            logger.debug(f"[{self.call_id}] Call already retired by another track")
            return False

        await aggregator.flush()
        await self._broadcast.publish_call_ended(self.call_id)
        logger.info(f"All streams ended for call {self.call_id}")
        return True

    async def supersede(self) -> None:
        """Shut down after a newer session took this key. Never retires the call."""
        if self.state is SessionState.STOPPED:
            return
        self.state = SessionState.STOPPED
        await self.channel.close()
        if self._opened:
            get_metrics().session_closed()
        logger.info(f"Session superseded: {self.call_id} - Track: {self.raw_track}")

    def _on_channel_ready(self) -> None:
        if self.state is SessionState.STARTING:
            self.state = SessionState.STREAMING

    async def _on_channel_failed(self, reason: str) -> None:
        logger.warning(
            f"[{self.label}] Transcription unavailable for call {self.call_id}, "
            f"audio will be discarded: {reason}"
        )

    async def _on_recognizer_event(self, event: RecognizerEvent) -> None:
        if self.state is SessionState.STOPPED or self.aggregator is None:
            return

        transcript = event.transcript.strip()
        if not transcript:
            return

        if event.is_final:
            logger.info(f"Final [{self.label}] {transcript}")
        else:
            logger.debug(f"Interim [{self.label}] {transcript}")

        await self.aggregator.absorb(
            self.speaker, transcript, event.is_final, event.confidence
        )

    def stats(self) -> dict:
        return {
            "call_id": self.call_id,
            "track": self.track.value,
            "state": self.state.value,
            "channel": self.channel.stats(),
            "idle_seconds": (
                round(self.aggregator.idle_seconds, 3) if self.aggregator else None
            ),
        }
