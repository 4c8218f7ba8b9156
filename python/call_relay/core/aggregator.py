"""
Turn aggregation for one call.

Final results are coalesced into turns; a turn closes when a final result
arrives from a different speaker, or when the call ends. Interim results
pass straight through and never open or close a turn.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from .models import EVENT_INTERIM, EVENT_TURN, TranscriptEvent

logger = logging.getLogger("relay.aggregator")

EventSink = Callable[[TranscriptEvent], Awaitable[None]]


class TurnAggregator:
    """
    Speaker-change turn builder shared by both tracks of a call.

    Both tracks' listener tasks call ``absorb`` concurrently; a per-call
    lock keeps buffer mutation and emission in one order.
    """

    def __init__(self, call_id: str, emit: EventSink):
        self.call_id = call_id
        self._emit = emit
        self._lock = asyncio.Lock()

        self.current_speaker: Optional[str] = None
        self.buffer = ""
        self.last_activity = time.monotonic()
        self._confidences: List[float] = []
        self._flushed = False

        self.turn_count = 0
        self.interim_count = 0

    @property
    def flushed(self) -> bool:
        return self._flushed

    @property
    def idle_seconds(self) -> float:
        return time.monotonic() - self.last_activity

    async def absorb(
        self,
        speaker: str,
        text: str,
        is_final: bool,
        confidence: Optional[float] = None,
    ) -> Optional[TranscriptEvent]:
        """
        Feed one recognizer fragment.

        Returns:
            The completed turn this fragment closed, if any.
        """
        if not text or not text.strip():
            return None

        async with self._lock:
            if self._flushed:
                logger.debug(f"[{self.call_id}] Discarding {speaker} fragment after flush")
                return None

            if not is_final:
                self.interim_count += 1
                await self._emit(TranscriptEvent(
                    type=EVENT_INTERIM,
                    call_id=self.call_id,
                    speaker=speaker,
                    text=text.strip(),
                    confidence=confidence,
                ))
                return None

            completed = None
            if speaker != self.current_speaker:
                if self.buffer:
                    completed = self._take_turn()
                self.current_speaker = speaker

            self.buffer += text + " "
            if confidence is not None:
                self._confidences.append(confidence)
            self.last_activity = time.monotonic()

            if completed is not None:
                await self._emit(completed)
            return completed

    async def flush(self) -> Optional[TranscriptEvent]:
        """Emit whatever is buffered. Only the first call has any effect."""
        async with self._lock:
            if self._flushed:
                return None
            self._flushed = True

            completed = self._take_turn() if self.buffer.strip() else None
            self.current_speaker = None
            self.buffer = ""
            self._confidences = []

            if completed is not None:
                await self._emit(completed)
            return completed

    def _take_turn(self) -> TranscriptEvent:
        confidence = None
        if self._confidences:
            confidence = sum(self._confidences) / len(self._confidences)

        turn = TranscriptEvent(
            type=EVENT_TURN,
            call_id=self.call_id,
            speaker=self.current_speaker,
            text=self.buffer.strip(),
            confidence=confidence,
        )
        self.buffer = ""
        self._confidences = []
        self.turn_count += 1
        return turn
