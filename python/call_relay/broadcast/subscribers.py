"""
Subscriber fan-out.

Maps call ids to the set of subscriber connections interested in them.
Subscriptions are independent of call sessions: a subscriber may register
before the call starts, while it runs, or after it has ended.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Protocol, Set

from ..core.models import EVENT_CALL_ENDED, TranscriptEvent
from ..metrics import get_metrics

logger = logging.getLogger("relay.broadcast")


class Subscriber(Protocol):
    async def send(self, message: str) -> None: ...


class SubscriberBroadcast:
    """
    Best-effort, at-most-once delivery of transcript events.

    Features:
    - Concurrent delivery with a per-subscriber timeout
    - A failing subscriber is removed without affecting the others
    - No replay: late subscribers only see events published after they join
    """

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self._subscribers: Dict[str, Set[Any]] = {}
        self._lock = asyncio.Lock()

        self._sent_count = 0
        self._failed_count = 0
        self._removed_count = 0

    async def subscribe(self, call_id: str, subscriber: Subscriber) -> None:
        async with self._lock:
            members = self._subscribers.setdefault(call_id, set())
            if subscriber in members:
                return
            members.add(subscriber)
        get_metrics().subscriber_change(1)
        logger.info(f"Subscriber registered for call {call_id}")

    async def unsubscribe(self, call_id: str, subscriber: Subscriber) -> bool:
        """Remove one interest. Returns False if it was not registered."""
        async with self._lock:
            members = self._subscribers.get(call_id)
            if not members or subscriber not in members:
                return False
            members.discard(subscriber)
            if not members:
                del self._subscribers[call_id]
        get_metrics().subscriber_change(-1)
        return True

    async def unsubscribe_all(self, subscriber: Subscriber) -> int:
        """Drop ``subscriber`` from every call. Returns how many interests were removed."""
        removed = 0
        async with self._lock:
            for call_id in list(self._subscribers):
                members = self._subscribers[call_id]
                if subscriber in members:
                    members.discard(subscriber)
                    removed += 1
                    if not members:
                        del self._subscribers[call_id]
        if removed:
            get_metrics().subscriber_change(-removed)
        return removed

    def subscriber_count(self, call_id: str) -> int:
        return len(self._subscribers.get(call_id, ()))

    async def publish(self, call_id: str, event: TranscriptEvent) -> int:
        """
        Deliver ``event`` to every current subscriber of ``call_id``.

        Returns:
            Number of subscribers that received the event.
        """
        async with self._lock:
            targets: List[Any] = list(self._subscribers.get(call_id, ()))
        if not targets:
            return 0

        results = await self._fan_out(targets, event)
        delivered = sum(1 for ok in results if ok)
        for subscriber, ok in zip(targets, results):
            if not ok and await self.unsubscribe(call_id, subscriber):
                self._removed_count += 1
        return delivered

    async def publish_call_ended(self, call_id: str) -> int:
        """
        Detach the call's subscribers and send each of them the call_ended sentinel.

        Subscribers registering while the sentinel is in flight start a
        fresh set for ``call_id`` and are kept.
        """
        get_metrics().transcript_event(EVENT_CALL_ENDED)
        async with self._lock:
            members: List[Any] = list(self._subscribers.pop(call_id, ()))
        if not members:
            return 0
        get_metrics().subscriber_change(-len(members))

        results = await self._fan_out(members, TranscriptEvent.call_ended(call_id))
        delivered = sum(1 for ok in results if ok)
        logger.info(f"Call {call_id} ended, notified {delivered} subscriber(s)")
        return delivered

    async def _fan_out(self, targets: List[Any], event: TranscriptEvent) -> List[bool]:
        data = json.dumps(event.to_dict(), ensure_ascii=False)
        results = await asyncio.gather(*(self._deliver(s, data) for s in targets))

        delivered = sum(1 for ok in results if ok)
        failed = len(results) - delivered
        self._sent_count += delivered
        self._failed_count += failed
        get_metrics().subscriber_delivery("sent", delivered)
        get_metrics().subscriber_delivery("failed", failed)
        return results

    async def _deliver(self, subscriber: Subscriber, data: str) -> bool:
        try:
            await asyncio.wait_for(subscriber.send(data), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Subscriber send timed out after {self.send_timeout}s, removing")
        except Exception as e:
            logger.warning(f"Subscriber send failed, removing: {e}")
        return False

    def get_stats(self) -> dict:
        return {
            "calls": len(self._subscribers),
            "subscribers": sum(len(m) for m in self._subscribers.values()),
            "sent_count": self._sent_count,
            "failed_count": self._failed_count,
            "removed_count": self._removed_count,
        }
