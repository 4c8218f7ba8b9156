"""
Relay configuration with environment variable support.

Environment Variables:
    DEEPGRAM_API_KEY - Recognizer API key (required at startup)
    PORT / RELAY_PORT - WebSocket listen port (default: 8080)
    RELAY_HOST - Bind address (default: 0.0.0.0)
    RELAY_DEEPGRAM_URL - Recognizer live endpoint
    RELAY_STT_* - Recognizer connection parameters
    RELAY_PENDING_QUEUE_MAX_FRAMES - Pre-ready audio queue bound (default: 500)
    RELAY_PENDING_OVERFLOW_POLICY - drop_oldest | drop_newest
    RELAY_PERSIST_URL - Optional HTTP endpoint for finished turns
    RELAY_DEBUG - Enable debug logging (true/false)
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

DROP_OLDEST = "drop_oldest"
DROP_NEWEST = "drop_newest"
OVERFLOW_POLICIES = (DROP_OLDEST, DROP_NEWEST)


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


def _get_port_from_env() -> int:
    """PORT wins over RELAY_PORT, matching common PaaS conventions."""
    return int(os.getenv("PORT") or os.getenv("RELAY_PORT", "8080"))


@dataclass
class RelayConfig:
    """Relay configuration."""

    # Transport
    host: str = field(default_factory=lambda: os.getenv("RELAY_HOST", "0.0.0.0"))
    port: int = field(default_factory=_get_port_from_env)
    media_path: str = field(
        default_factory=lambda: os.getenv("RELAY_MEDIA_PATH", "/media")
    )
    subscribe_path: str = field(
        default_factory=lambda: os.getenv("RELAY_SUBSCRIBE_PATH", "/subscribe")
    )

    # Recognizer connection
    deepgram_api_key: str = field(
        default_factory=lambda: os.getenv("DEEPGRAM_API_KEY", "")
    )
    deepgram_url: str = field(
        default_factory=lambda: os.getenv(
            "RELAY_DEEPGRAM_URL", "wss://api.deepgram.com/v1/listen"
        )
    )
    stt_encoding: str = field(
        default_factory=lambda: os.getenv("RELAY_STT_ENCODING", "mulaw")
    )
    stt_sample_rate: int = field(
        default_factory=lambda: int(os.getenv("RELAY_STT_SAMPLE_RATE", "8000"))
    )
    stt_channels: int = field(
        default_factory=lambda: int(os.getenv("RELAY_STT_CHANNELS", "1"))
    )
    stt_model: str = field(
        default_factory=lambda: os.getenv("RELAY_STT_MODEL", "nova-2")
    )
    stt_language: str = field(
        default_factory=lambda: os.getenv("RELAY_STT_LANGUAGE", "en-US")
    )
    stt_punctuate: bool = field(
        default_factory=lambda: _env_bool("RELAY_STT_PUNCTUATE")
    )
    stt_smart_format: bool = field(
        default_factory=lambda: _env_bool("RELAY_STT_SMART_FORMAT")
    )
    stt_interim_results: bool = field(
        default_factory=lambda: _env_bool("RELAY_STT_INTERIM_RESULTS")
    )

    # Pre-ready audio buffering
    pending_queue_max_frames: int = field(
        default_factory=lambda: int(
            os.getenv("RELAY_PENDING_QUEUE_MAX_FRAMES", "500")
        )
    )
    pending_overflow_policy: str = field(
        default_factory=lambda: os.getenv(
            "RELAY_PENDING_OVERFLOW_POLICY", DROP_OLDEST
        )
    )

    # Subscribers
    subscriber_send_timeout: float = field(
        default_factory=lambda: float(
            os.getenv("RELAY_SUBSCRIBER_SEND_TIMEOUT", "5.0")
        )
    )

    # Persistence collaborator
    persist_url: Optional[str] = field(
        default_factory=lambda: os.getenv("RELAY_PERSIST_URL") or None
    )

    # Side servers (0 disables)
    health_port: int = field(
        default_factory=lambda: int(os.getenv("RELAY_HEALTH_PORT", "8081"))
    )
    metrics_port: int = field(
        default_factory=lambda: int(os.getenv("RELAY_METRICS_PORT", "9090"))
    )

    # Debug
    debug: bool = field(default_factory=lambda: _env_bool("RELAY_DEBUG", "false"))

    def __post_init__(self):
        """Normalize values after initialization."""
        import logging

        logger = logging.getLogger("relay.config")

        policy = (self.pending_overflow_policy or "").strip().lower()
        if policy not in OVERFLOW_POLICIES:
            logger.warning(
                f"Unknown overflow policy '{self.pending_overflow_policy}', "
                f"using {DROP_OLDEST}"
            )
            policy = DROP_OLDEST
        self.pending_overflow_policy = policy

        if self.pending_queue_max_frames < 1:
            logger.warning("RELAY_PENDING_QUEUE_MAX_FRAMES must be >= 1, using 1")
            self.pending_queue_max_frames = 1

    @property
    def has_credentials(self) -> bool:
        """True if a recognizer API key is configured."""
        return bool(self.deepgram_api_key)

    def deepgram_query(self) -> Dict[str, str]:
        """Recognizer query parameters passed at channel-open time."""
        return {
            "encoding": self.stt_encoding,
            "sample_rate": str(self.stt_sample_rate),
            "channels": str(self.stt_channels),
            "punctuate": str(self.stt_punctuate).lower(),
            "interim_results": str(self.stt_interim_results).lower(),
            "smart_format": str(self.stt_smart_format).lower(),
            "model": self.stt_model,
            "language": self.stt_language,
        }


# Singleton config instance
_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = RelayConfig()
    return _config


def reset_config():
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
