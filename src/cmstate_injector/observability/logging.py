"""
Structured logging utilities for the CMState injector.

This module provides per-request correlation ID tracking, structured log
formatting, and a logger helper for admission events.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health checks)
HEALTH_CHECK_PATHS = frozenset({"/healthz", "/readyz", "/metrics"})

STRUCTURED_FIELDS = (
    "namespace",
    "pod_name",
    "operation",
    "template",
    "cmstate",
    "verdict",
    "duration",
    "error_type",
    "dry_run",
)


class HealthCheckFilter(logging.Filter):
    """
    Logging filter that suppresses health check and metrics endpoint logs.

    These endpoints are hit frequently by the kubelet and monitoring
    systems, generating excessive noise in logs.
    """

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_CHECK_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get()
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in production monitoring systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Each admission request gets its own ID.
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_checks: bool = False,
    webhook_log_level: str = "INFO",
) -> None:
    """
    Set up structured logging for the webhook.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_checks: Whether to log health check requests (default: False)
        webhook_log_level: Log level for the admission webhook handlers
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_checks:
        handler.addFilter(HealthCheckFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Set specific logger levels for third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)

    webhook_level = getattr(logging, webhook_log_level.upper(), logging.INFO)
    logging.getLogger("cmstate_injector.webhooks").setLevel(webhook_level)


class AdmissionLogger:
    """
    Logger for admission events with structured fields.

    Wraps a standard logger so that every admission decision carries the
    same set of structured attributes.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_decision(
        self,
        operation: str,
        namespace: str,
        pod_name: str,
        verdict: str,
        message: str,
        duration: float,
    ) -> None:
        """
        Log the final admission decision for a Pod.

        Denials and internal errors are logged at WARNING so they surface
        with the default log level.
        """
        level = logging.INFO if verdict in ("allowed", "patched") else logging.WARNING
        self.logger.log(
            level,
            f"{operation} pod {namespace}/{pod_name}: {verdict} ({message})",
            extra={
                "operation": operation,
                "namespace": namespace,
                "pod_name": pod_name,
                "verdict": verdict,
                "duration": duration,
            },
        )

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        self.logger.error(message, exc_info=exc_info, extra=kwargs)
