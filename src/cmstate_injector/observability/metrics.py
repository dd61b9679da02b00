"""
Prometheus metrics for the CMState injector.

This module provides metrics collection for admission decisions and
Kubernetes API calls, and the HTTP server exposing them together with the
liveness and readiness checks.
"""

import logging
import time
from contextlib import asynccontextmanager

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    json_response,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

# Metrics definitions
ADMISSION_REQUESTS_TOTAL = Counter(
    "cmstate_injector_admission_requests_total",
    "Total number of admission requests handled",
    ["operation", "verdict"],
    registry=None,  # Registered in get_metrics_registry()
)

ADMISSION_DURATION = Histogram(
    "cmstate_injector_admission_duration_seconds",
    "Time spent deciding admission requests",
    ["operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=None,
)

STORE_REQUESTS_TOTAL = Counter(
    "cmstate_injector_store_requests_total",
    "Total number of Kubernetes API calls for CMState and CMTemplate resources",
    ["verb", "kind", "result"],
    registry=None,
)

CMSTATES_CREATED_TOTAL = Counter(
    "cmstate_injector_cmstates_created_total",
    "Total number of CMState resources created by the webhook",
    ["namespace"],
    registry=None,
)

AUDIENCE_REMOVALS_TOTAL = Counter(
    "cmstate_injector_audience_removals_total",
    "Total number of Pods removed from a CMState audience",
    ["namespace"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in [
            ADMISSION_REQUESTS_TOTAL,
            ADMISSION_DURATION,
            STORE_REQUESTS_TOTAL,
            CMSTATES_CREATED_TOTAL,
            AUDIENCE_REMOVALS_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the CMState injector."""

    def __init__(self):
        """Initialize metrics collector."""
        self.registry = get_metrics_registry()

    def record_admission(self, operation: str, verdict: str, duration: float) -> None:
        """
        Record a finished admission decision.

        Args:
            operation: Admission operation (CREATE, DELETE, ...)
            verdict: allowed, patched, denied or errored
            duration: Time spent on the request in seconds
        """
        ADMISSION_REQUESTS_TOTAL.labels(operation=operation, verdict=verdict).inc()
        ADMISSION_DURATION.labels(operation=operation).observe(duration)

    @asynccontextmanager
    async def track_store_call(self, verb: str, kind: str):
        """
        Context manager to count Kubernetes API calls by outcome.

        API errors with status 404 are counted as ``not_found``.

        Args:
            verb: API verb (get, create, patch)
            kind: Resource kind (CMState, CMTemplate)
        """
        result = "success"
        try:
            yield
        except BaseException as e:
            result = "not_found" if getattr(e, "status", None) == 404 else "error"
            raise
        finally:
            STORE_REQUESTS_TOTAL.labels(verb=verb, kind=kind, result=result).inc()

    def record_cmstate_created(self, namespace: str) -> None:
        CMSTATES_CREATED_TOTAL.labels(namespace=namespace).inc()

    def record_audience_removal(self, namespace: str) -> None:
        AUDIENCE_REMOVALS_TOTAL.labels(namespace=namespace).inc()


class MetricsServer:
    """HTTP server for exposing Prometheus metrics and health checks."""

    def __init__(self, port: int = 8080, host: str = "0.0.0.0"):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.port = port
        self.host = host
        self.ready = False
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes for the metrics server."""
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)
        self.app.router.add_get("/readyz", self._readyz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            registry = get_metrics_registry()
            metrics_data = generate_latest(registry)
            return Response(
                body=metrics_data, headers={"Content-Type": CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        """Liveness: 200 as long as the event loop serves requests."""
        return Response(text="ok")

    async def _readyz_handler(self, request: Request) -> Response:
        """Readiness: 200 once the admission server is accepting requests."""
        if self.ready:
            return json_response({"status": "ready", "timestamp": time.time()})
        return json_response(
            {"status": "not_ready", "timestamp": time.time()}, status=503
        )

    async def start(self) -> None:
        """Start the metrics server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(self.runner, self.host, self.port)
            await self.site.start()

            logger.info(f"Metrics server started on {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the metrics server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Metrics server stopped")
        except Exception as e:
            logger.error(f"Error stopping metrics server: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


# Global metrics collector instance
metrics_collector = MetricsCollector()
