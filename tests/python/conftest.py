"""Pytest configuration and fixtures."""

import base64
import json
import os
import sys

import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from fakes import FakeRecognizerClient, FakeSubscriber  # noqa: E402


def pytest_configure(config):
    """Configure pytest."""
    os.environ['RELAY_LOG_LEVEL'] = 'WARNING'
    # Register asyncio marker
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture
def recognizer():
    """Recognizer client that connects immediately."""
    return FakeRecognizerClient()


@pytest.fixture
def gated_recognizer():
    """Recognizer client whose handshake waits for release()."""
    return FakeRecognizerClient(gated=True)


@pytest.fixture
def subscriber():
    return FakeSubscriber()


@pytest.fixture
def twilio_start():
    """Build a Twilio Media Streams start message."""
    def _build(call_sid="CA123", track="inbound_track"):
        return json.dumps({
            "event": "start",
            "sequenceNumber": "1",
            "start": {
                "callSid": call_sid,
                "streamSid": "MZ456",
                "tracks": [track],
                "mediaFormat": {
                    "encoding": "audio/x-mulaw",
                    "sampleRate": 8000,
                    "channels": 1,
                    "track": track,
                },
            },
        })
    return _build


@pytest.fixture
def twilio_media():
    """Build a Twilio Media Streams media message."""
    def _build(payload: bytes):
        return json.dumps({
            "event": "media",
            "media": {"payload": base64.b64encode(payload).decode("ascii")},
        })
    return _build
