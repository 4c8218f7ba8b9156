"""
Session registry.

Single source of truth for (call_id, track) -> CallSession,
call_id -> live tracks, and call_id -> TurnAggregator. All mutation
happens under one asyncio lock that is never held across network I/O.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from ..metrics import get_metrics
from .aggregator import EventSink, TurnAggregator
from .models import Track

if TYPE_CHECKING:
    from .call_session import CallSession

logger = logging.getLogger("relay.registry")


class SessionRegistry:
    """Explicitly owned registry of live call sessions."""

    def __init__(self, emit: EventSink):
        self._emit = emit
        self._sessions: Dict[Tuple[str, Track], "CallSession"] = {}
        self._tracks: Dict[str, Set[Track]] = {}
        self._aggregators: Dict[str, TurnAggregator] = {}
        self._lock = asyncio.Lock()

    async def register(self, session: "CallSession") -> Optional["CallSession"]:
        """
        Install ``session`` under its key.

        A session already holding the key is superseded (its recognizer
        channel closed) before this returns, so the caller's channel is
        never open alongside the old one.

        Returns:
            The displaced session, if any.
        """
        async with self._lock:
            previous = self._sessions.get(session.key)
            self._sessions[session.key] = session
            self._tracks.setdefault(session.call_id, set()).add(session.track)
            active_calls = len(self._tracks)

        get_metrics().set_active_calls(active_calls)

        if previous is not None and previous is not session:
            logger.info(
                f"Replacing session for {session.call_id} - Track: {session.track.value}"
            )
            await previous.supersede()
            return previous
        return None

    async def unregister(
        self,
        call_id: str,
        track: Track,
        session: Optional["CallSession"] = None,
    ) -> bool:
        """
        Remove the entry for (call_id, track).

        When ``session`` is given the entry is only removed if it is still
        that exact session.

        Returns:
            True if any track of ``call_id`` is still registered.
        """
        key = (call_id, track)
        async with self._lock:
            current = self._sessions.get(key)
            if current is not None and (session is None or current is session):
                del self._sessions[key]
                tracks = self._tracks.get(call_id)
                if tracks is not None:
                    tracks.discard(track)
                    if not tracks:
                        del self._tracks[call_id]
            remaining = bool(self._tracks.get(call_id))
            active_calls = len(self._tracks)

        get_metrics().set_active_calls(active_calls)
        return remaining

    async def aggregator_for(self, call_id: str) -> TurnAggregator:
        """Get or create the call's shared TurnAggregator."""
        async with self._lock:
            aggregator = self._aggregators.get(call_id)
            if aggregator is None:
                aggregator = TurnAggregator(call_id, self._emit)
                self._aggregators[call_id] = aggregator
            return aggregator

    async def retire_call(self, call_id: str) -> Optional[TurnAggregator]:
        """
        Hand the aggregator to the caller that closed the call's last track.

        Returns None if a track is still live or another caller already
        retired the call.
        """
        async with self._lock:
            if self._tracks.get(call_id):
                return None
            return self._aggregators.pop(call_id, None)

    def get(self, call_id: str, track: Track) -> Optional["CallSession"]:
        return self._sessions.get((call_id, track))

    def tracks_for(self, call_id: str) -> Set[Track]:
        return set(self._tracks.get(call_id, ()))

    def sessions(self) -> List["CallSession"]:
        return list(self._sessions.values())

    @property
    def active_calls(self) -> int:
        return len(self._tracks)

    async def close_all(self, reason: str = "shutdown") -> None:
        """Stop every live session."""
        sessions = self.sessions()
        if not sessions:
            return
        logger.info(f"Stopping {len(sessions)} live session(s)")
        results = await asyncio.gather(
            *(session.stop(reason) for session in sessions),
            return_exceptions=True,
        )
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping session {session.key}: {result}")

    def get_stats(self) -> dict:
        return {
            "active_calls": len(self._tracks),
            "active_sessions": len(self._sessions),
            "aggregators": len(self._aggregators),
            "sessions": [session.stats() for session in self._sessions.values()],
        }
