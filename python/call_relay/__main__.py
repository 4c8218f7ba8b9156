"""
Call relay entry point.

Usage:
    python -m call_relay

Environment Variables:
    DEEPGRAM_API_KEY - Recognizer API key (required)
    PORT - WebSocket listen port (default: 8080)
    RELAY_HEALTH_PORT - Health server port, 0 disables (default: 8081)
    RELAY_METRICS_PORT - Prometheus port, 0 disables (default: 9090)
    RELAY_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
"""

import asyncio
import signal
import sys

from dotenv import load_dotenv

from .config import get_config, setup_logging
from .health import HealthChecker
from .metrics import get_metrics
from .relay import TranscriptRelay
from .transport import RelayServer


async def main():
    """Main entry point."""
    load_dotenv()
    config = get_config()
    logger = setup_logging("DEBUG" if config.debug else None)

    if not config.has_credentials:
        logger.error("Please set DEEPGRAM_API_KEY in your environment")
        sys.exit(1)

    relay = TranscriptRelay(config)
    server = RelayServer(relay, config)

    health = None
    if config.health_port:
        health = HealthChecker(port=config.health_port, host=config.host)
        health.register_check("websocket_server", lambda: server.is_serving)
        health.set_stats_provider(
            lambda: {**relay.get_stats(), "server": server.get_stats()}
        )

    if config.metrics_port:
        metrics = get_metrics()
        metrics.port = config.metrics_port
        metrics.start()

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown requested...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())

    try:
        await server.start()
        if health:
            await health.start()
        await shutdown_event.wait()
    except OSError as e:
        logger.error(f"Fatal error: {e}")
    finally:
        await server.stop()
        await relay.stop()
        if health:
            await health.stop()


if __name__ == "__main__":
    asyncio.run(main())
