"""
Recognizer protocol.

A client opens one stream per call track. The stream accepts raw audio
frames and yields RecognizerEvent objects in the order the provider
emitted them; the iterator ends when the provider closes the stream.
"""

from typing import AsyncIterator, Protocol

from ..core.models import RecognizerEvent


class RecognizerStream(Protocol):
    async def send_audio(self, frame: bytes) -> None: ...

    def events(self) -> AsyncIterator[RecognizerEvent]: ...

    async def close(self) -> None: ...


class RecognizerClient(Protocol):
    async def connect(self, label: str) -> RecognizerStream: ...
