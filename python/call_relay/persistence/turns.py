"""
Turn persistence collaborators.

The relay calls ``persist_turn`` once per completed turn as a tracked
fire-and-forget task. Implementations log their own failures and never
raise into the caller.
"""

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from ..config import RelayConfig

logger = logging.getLogger("relay.persistence")


class TurnPersister(Protocol):
    async def persist_turn(self, call_id: str, speaker: str, text: str) -> None: ...

    async def close(self) -> None: ...


class LoggingTurnPersister:
    """Default persister: writes finished turns to the log."""

    def __init__(self):
        self.persisted_count = 0

    async def persist_turn(self, call_id: str, speaker: str, text: str) -> None:
        self.persisted_count += 1
        logger.info(f"[{call_id}] turn {speaker}: {text}")

    async def close(self) -> None:
        pass


class HttpTurnPersister:
    """POSTs each finished turn as JSON to an external store."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self.persisted_count = 0
        self.failed_count = 0

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def persist_turn(self, call_id: str, speaker: str, text: str) -> None:
        payload = {"callId": call_id, "speaker": speaker, "text": text}
        try:
            async with self._get_session().post(self.url, json=payload) as response:
                if response.status >= 400:
                    self.failed_count += 1
                    logger.warning(
                        f"[{call_id}] Turn persistence rejected: HTTP {response.status}"
                    )
                    return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.failed_count += 1
            logger.error(f"[{call_id}] Turn persistence failed: {e}")
            return
        self.persisted_count += 1

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def create_persister(config: RelayConfig) -> TurnPersister:
    """HTTP persister when RELAY_PERSIST_URL is set, logging persister otherwise."""
    if config.persist_url:
        logger.info(f"Persisting turns to {config.persist_url}")
        return HttpTurnPersister(config.persist_url)
    return LoggingTurnPersister()
