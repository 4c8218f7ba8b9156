"""
Prometheus metrics for the call relay.

Covers:
- Active sessions and calls
- Recognizer connection outcomes
- Audio frame routing (forwarded / queued / dropped / discarded)
- Transcript events published by type
- Subscriber deliveries
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger("relay.metrics")


ACTIVE_SESSIONS = Gauge(
    'relay_active_sessions',
    'Number of live call-track sessions'
)
ACTIVE_CALLS = Gauge(
    'relay_active_calls',
    'Number of calls with at least one live track'
)
RECOGNIZER_CONNECTIONS = Counter(
    'relay_recognizer_connections_total',
    'Recognizer connection outcomes',
    ['outcome']  # 'opened', 'failed'
)
AUDIO_FRAMES = Counter(
    'relay_audio_frames_total',
    'Audio frames by routing outcome',
    ['outcome']  # 'forwarded', 'queued', 'dropped', 'discarded'
)
TRANSCRIPT_EVENTS = Counter(
    'relay_transcript_events_total',
    'Transcript events published',
    ['type']  # 'interim', 'turn', 'call_ended'
)
SUBSCRIBER_DELIVERIES = Counter(
    'relay_subscriber_deliveries_total',
    'Subscriber delivery outcomes',
    ['outcome']  # 'sent', 'failed'
)
SUBSCRIBERS = Gauge(
    'relay_subscribers',
    'Registered subscriber interests across all calls'
)


class MetricsCollector:
    """Thin facade over the module-level metrics plus the exporter server."""

    def __init__(self, port: int = 9090, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self._started = False

    def start(self) -> bool:
        """
        Start the Prometheus HTTP exporter.

        Returns:
            True if the exporter is running
        """
        if self._started:
            return True

        try:
            start_http_server(self.port, addr=self.host)
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

        self._started = True
        logger.info(f"Prometheus metrics server started on {self.host}:{self.port}")
        return True

    def session_opened(self) -> None:
        ACTIVE_SESSIONS.inc()

    def session_closed(self) -> None:
        ACTIVE_SESSIONS.dec()

    def set_active_calls(self, count: int) -> None:
        ACTIVE_CALLS.set(count)

    def recognizer_connection(self, outcome: str) -> None:
        RECOGNIZER_CONNECTIONS.labels(outcome=outcome).inc()

    def audio_frame(self, outcome: str, count: int = 1) -> None:
        AUDIO_FRAMES.labels(outcome=outcome).inc(count)

    def transcript_event(self, event_type: str) -> None:
        TRANSCRIPT_EVENTS.labels(type=event_type).inc()

    def subscriber_delivery(self, outcome: str, count: int = 1) -> None:
        if count:
            SUBSCRIBER_DELIVERIES.labels(outcome=outcome).inc(count)

    def subscriber_change(self, delta: int) -> None:
        SUBSCRIBERS.inc(delta)


_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
