"""
Call Relay - dual-track telephony audio to live transcript turns.

Bridges media-stream WebSocket connections (one per call track) to a live
speech recognizer and fans the results out to subscribers:
- Per-track recognizer channels with pre-connect audio buffering
- Caller/callee demultiplexing per call
- Speaker-change turn aggregation
- Best-effort subscriber broadcast with dead-subscriber pruning

Usage:
    python -m call_relay

Environment Variables:
    DEEPGRAM_API_KEY - Recognizer API key (required)
    PORT - WebSocket listen port (default: 8080)
    RELAY_PERSIST_URL - Optional HTTP endpoint for finished turns
"""

__version__ = "1.0.0"

from .config import RelayConfig, get_config
from .core import CallSession, SessionRegistry, Track, TranscriptEvent, TurnAggregator
from .relay import TranscriptRelay

__all__ = [
    "RelayConfig",
    "get_config",
    "CallSession",
    "SessionRegistry",
    "Track",
    "TranscriptEvent",
    "TurnAggregator",
    "TranscriptRelay",
]
