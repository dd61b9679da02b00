"""
Observability utilities for the CMState injector.

This module provides metrics, health checks, tracing and structured logging
capabilities for production monitoring and troubleshooting.
"""

from .logging import AdmissionLogger, setup_structured_logging
from .metrics import MetricsServer, get_metrics_registry, metrics_collector
from .tracing import admission_span, setup_tracing, shutdown_tracing

__all__ = [
    "AdmissionLogger",
    "MetricsServer",
    "admission_span",
    "get_metrics_registry",
    "metrics_collector",
    "setup_structured_logging",
    "setup_tracing",
    "shutdown_tracing",
]
