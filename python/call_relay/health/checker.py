"""
Health and stats HTTP server.

Endpoints:
- /health/live  - 200 while the process is up
- /health/ready - 200 only when every registered check passes, else 503
- /stats        - JSON snapshot from the registered stats provider
"""

import logging
from typing import Callable, Dict, Optional

from aiohttp import web

logger = logging.getLogger("relay.health")


class HealthChecker:
    """Liveness/readiness probes for the relay."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self._checks: Dict[str, Callable[[], bool]] = {}
        self._stats_provider: Optional[Callable[[], dict]] = None
        self._runner: Optional[web.AppRunner] = None

    def register_check(self, name: str, check_fn: Callable[[], bool]) -> None:
        """Add a readiness check; it must return True when healthy."""
        self._checks[name] = check_fn

    def set_stats_provider(self, provider: Callable[[], dict]) -> None:
        self._stats_provider = provider

    def run_checks(self) -> Dict[str, bool]:
        results = {}
        for name, check_fn in self._checks.items():
            try:
                results[name] = bool(check_fn())
            except Exception as e:
                logger.warning(f"Health check '{name}' raised: {e}")
                results[name] = False
        return results

    async def _live_handler(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")

    async def _ready_handler(self, request: web.Request) -> web.Response:
        results = self.run_checks()
        healthy = all(results.values())
        return web.json_response(
            {"status": "healthy" if healthy else "unhealthy", "components": results},
            status=200 if healthy else 503,
        )

    async def _stats_handler(self, request: web.Request) -> web.Response:
        stats = self._stats_provider() if self._stats_provider else {}
        return web.json_response(stats)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._ready_handler)
        app.router.add_get("/health/live", self._live_handler)
        app.router.add_get("/health/ready", self._ready_handler)
        app.router.add_get("/stats", self._stats_handler)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        await web.TCPSite(self._runner, self.host, self.port).start()
        logger.info(f"Health check server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health check server stopped")
