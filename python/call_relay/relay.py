"""
Transcript relay orchestrator.

Wires the core together:
- SessionRegistry for call/track sessions and per-call aggregators
- Recognizer client for per-track AudioChannels
- SubscriberBroadcast for interim/turn/call_ended fan-out
- Turn persister (fire-and-forget) for completed turns
"""

import logging
from typing import Optional

from .broadcast import SubscriberBroadcast
from .config import RelayConfig, get_config
from .metrics import get_metrics
from .persistence import TurnPersister, create_persister
from .recognizer import DeepgramClient, RecognizerClient
from .core.call_session import CallSession
from .core.models import EVENT_TURN, TranscriptEvent, Track
from .core.registry import SessionRegistry
from .core.task_registry import TaskRegistry, safe_task

logger = logging.getLogger("relay.core")


class TranscriptRelay:
    """Owns the shared state of one relay process."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        recognizer: Optional[RecognizerClient] = None,
        broadcast: Optional[SubscriberBroadcast] = None,
        persister: Optional[TurnPersister] = None,
        tasks: Optional[TaskRegistry] = None,
    ):
        self.config = config or get_config()
        self.recognizer = recognizer or DeepgramClient.from_config(self.config)
        self.broadcast = broadcast or SubscriberBroadcast(
            send_timeout=self.config.subscriber_send_timeout
        )
        self.persister = persister or create_persister(self.config)
        self.tasks = tasks or TaskRegistry()
        self.registry = SessionRegistry(emit=self._on_transcript_event)

    async def _on_transcript_event(self, event: TranscriptEvent) -> None:
        """Route an aggregator event to persistence and subscribers."""
        get_metrics().transcript_event(event.type)

        if event.type == EVENT_TURN:
            safe_task(
                self.persister.persist_turn(event.call_id, event.speaker, event.text),
                name=f"persist:{event.call_id}",
                registry=self.tasks,
            )

        await self.broadcast.publish(event.call_id, event)

    async def start_session(
        self,
        call_id: str,
        track: Track,
        raw_track: Optional[str] = None,
    ) -> CallSession:
        """Create, register and open a session for one call track."""
        session = CallSession(
            call_id=call_id,
            track=track,
            registry=self.registry,
            broadcast=self.broadcast,
            recognizer=self.recognizer,
            raw_track=raw_track,
            max_pending=self.config.pending_queue_max_frames,
            overflow_policy=self.config.pending_overflow_policy,
            tasks=self.tasks,
        )
        await session.start()
        return session

    async def stop(self) -> None:
        """Stop every session and wait for background work."""
        await self.registry.close_all("relay shutdown")
        await self.tasks.shutdown()
        await self.persister.close()
        logger.info("Relay stopped")

    def get_stats(self) -> dict:
        return {
            "registry": self.registry.get_stats(),
            "broadcast": self.broadcast.get_stats(),
            "tasks": self.tasks.get_stats(),
        }
