"""
AudioChannel: one recognizer connection for one (call, track).

Audio arriving before the recognizer handshake completes is held in a
bounded FIFO and drained, in order, the moment the connection is up.
Recognizer failures are terminal for the channel only; the owner is told
once and later frames are discarded.
"""

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Awaitable, Callable, Deque, Optional

from ..config import DROP_NEWEST, DROP_OLDEST
from ..metrics import get_metrics
from .models import ChannelState, RecognizerError, RecognizerEvent
from .task_registry import TaskRegistry, get_default_registry

if TYPE_CHECKING:
    from ..recognizer.base import RecognizerClient, RecognizerStream

logger = logging.getLogger("relay.channel")

EventCallback = Callable[[RecognizerEvent], Awaitable[None]]
StatusCallback = Callable[[str], Awaitable[None]]


class AudioChannel:
    """
    Buffer-or-forward pipe to the recognizer.

    Usage:
        channel = AudioChannel(client, "CALLER", on_event=..., on_failed=...)
        channel.open()
        await channel.send(frame)
        await channel.close()
    """

    def __init__(
        self,
        client: "RecognizerClient",
        label: str,
        on_event: EventCallback,
        on_failed: Optional[StatusCallback] = None,
        on_ready: Optional[Callable[[], None]] = None,
        max_pending: int = 500,
        overflow_policy: str = DROP_OLDEST,
        tasks: Optional[TaskRegistry] = None,
    ):
        self.label = label
        self._client = client
        self._on_event = on_event
        self._on_failed = on_failed
        self._on_ready = on_ready
        self.max_pending = max_pending
        self.overflow_policy = overflow_policy
        self._tasks = tasks or get_default_registry()

        self.state = ChannelState.IDLE
        self._pending: Deque[bytes] = deque()
        self._stream: Optional["RecognizerStream"] = None
        self._task: Optional[asyncio.Task] = None
        self._failure_reported = False

        self.forwarded_count = 0
        self.dropped_count = 0
        self.discarded_count = 0

    @property
    def ready(self) -> bool:
        return self.state is ChannelState.READY

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_terminal(self) -> bool:
        return self.state in (ChannelState.FAILED, ChannelState.CLOSED)

    def open(self) -> None:
        """Start connecting in the background. No-op unless IDLE."""
        if self.state is not ChannelState.IDLE:
            return
        self.state = ChannelState.CONNECTING
        self._task = self._tasks.register(f"recognizer:{self.label}", self._run())

    async def send(self, frame: bytes) -> None:
        """Forward ``frame`` if ready, queue it if connecting, drop it if terminal."""
        if self.is_terminal:
            self.discarded_count += 1
            get_metrics().audio_frame("discarded")
            return

        if self.state is ChannelState.READY:
            await self._forward(frame)
            return

        self._enqueue(frame)

    def _enqueue(self, frame: bytes) -> None:
        if len(self._pending) >= self.max_pending:
            self.dropped_count += 1
            get_metrics().audio_frame("dropped")
            if self.dropped_count == 1 or self.dropped_count % 100 == 0:
                logger.warning(
                    f"[{self.label}] Pending audio queue full ({self.max_pending}), "
                    f"policy={self.overflow_policy}, dropped={self.dropped_count}"
                )
            if self.overflow_policy == DROP_NEWEST:
                return
            self._pending.popleft()

        self._pending.append(frame)
        get_metrics().audio_frame("queued")

    async def _forward(self, frame: bytes) -> None:
        try:
            await self._stream.send_audio(frame)
        except RecognizerError as e:
            await self._fail(f"send failed: {e}")
            return
        self.forwarded_count += 1
        get_metrics().audio_frame("forwarded")

    async def _drain(self) -> None:
        """Flush queued frames in FIFO order, then flip to READY."""
        drained = 0
        while self._pending:
            if self.is_terminal:
                return
            frame = self._pending.popleft()
            await self._forward(frame)
            drained += 1

        if self.state is ChannelState.CONNECTING:
            self.state = ChannelState.READY
            if drained:
                logger.debug(f"[{self.label}] Drained {drained} queued frames")
            if self._on_ready:
                self._on_ready()

    async def _run(self) -> None:
        try:
            stream = await self._client.connect(self.label)
        except RecognizerError as e:
            get_metrics().recognizer_connection("failed")
            await self._fail(str(e))
            return

        if self.is_terminal:
            # Closed while the handshake was in flight
            await stream.close()
            return

        self._stream = stream
        get_metrics().recognizer_connection("opened")
        await self._drain()

        try:
            async for event in stream.events():
                if self.is_terminal:
                    break
                await self._on_event(event)
        except RecognizerError as e:
            await self._fail(str(e))
            return

        if not self.is_terminal:
            await self._fail("closed by recognizer")

    async def _fail(self, reason: str) -> None:
        if self.state is ChannelState.CLOSED:
            return
        self.state = ChannelState.FAILED
        self._pending.clear()
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.close()

        if self._failure_reported:
            return
        self._failure_reported = True
        logger.error(f"Recognizer channel failed for {self.label}: {reason}")
        if self._on_failed:
            await self._on_failed(reason)

    async def close(self) -> None:
        """Tear down the channel. Safe to call repeatedly or after failure."""
        if self.state is ChannelState.CLOSED:
            return
        self.state = ChannelState.CLOSED
        self._pending.clear()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            # Listener errors are already logged by the task registry
            await asyncio.gather(task, return_exceptions=True)

        if self._stream is not None:
            await self._stream.close()
            self._stream = None

    def stats(self) -> dict:
        return {
            "label": self.label,
            "state": self.state.value,
            "pending": len(self._pending),
            "forwarded": self.forwarded_count,
            "dropped": self.dropped_count,
            "discarded": self.discarded_count,
        }
