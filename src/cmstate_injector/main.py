#!/usr/bin/env python3
"""
CMState Injector - Main entry point for the kopf-based admission webhook.

Usage:
    cmstate-injector
    # Or:
    python -m cmstate_injector.main

Environment Variables:
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    WEBHOOK_PORT: Port for the admission webhook server
    WEBHOOK_CERT_DIR: Directory holding tls.crt and tls.key
    WEBHOOK_MANAGED: Let kopf maintain the MutatingWebhookConfiguration
    ADMISSION_TIMEOUT_SECONDS: Upper bound for a single admission decision
    TRACING_ENABLED: Export OpenTelemetry spans to OTEL_EXPORTER_OTLP_ENDPOINT
"""

import logging
import sys

import kopf

from cmstate_injector.constants import WEBHOOK_CONFIGURATION_NAME
from cmstate_injector.observability.logging import setup_structured_logging
from cmstate_injector.observability.metrics import MetricsServer
from cmstate_injector.observability.tracing import setup_tracing, shutdown_tracing
from cmstate_injector.settings import settings as injector_settings
from cmstate_injector.utils.kubernetes import CMStateStore, load_kubernetes_config

# Importing the webhook module registers its admission handler with kopf
from cmstate_injector.webhooks import pod as pod_webhook  # noqa: F401

logger = logging.getLogger(__name__)

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the webhook based on settings."""
    setup_structured_logging(
        log_level=injector_settings.log_level.upper(),
        enable_json_formatting=injector_settings.json_logs,
        correlation_id_enabled=injector_settings.correlation_ids,
        log_health_checks=injector_settings.log_health_checks,
        webhook_log_level=injector_settings.webhook_log_level,
    )


def configure_tracing() -> None:
    """Configure OpenTelemetry tracing for the webhook based on settings."""
    setup_tracing(
        enabled=injector_settings.tracing_enabled,
        endpoint=injector_settings.otel_exporter_endpoint,
        service_name=injector_settings.otel_service_name,
        sample_rate=injector_settings.otel_sample_rate,
        insecure=injector_settings.otel_insecure,
    )


def build_operator_settings() -> kopf.OperatorSettings:
    """
    Build the kopf settings serving the admission webhook.

    The webhook server must be configured before ``kopf.run()``, so that kopf
    finds a server for the registered admission handler.
    """
    settings_obj = kopf.OperatorSettings()

    if injector_settings.webhook_tls_enabled:
        settings_obj.admission.server = kopf.WebhookServer(
            addr=injector_settings.webhook_host,
            port=injector_settings.webhook_port,
            certfile=str(injector_settings.certfile),
            pkeyfile=str(injector_settings.keyfile),
        )
    else:
        settings_obj.admission.server = kopf.WebhookServer(
            addr=injector_settings.webhook_host,
            port=injector_settings.webhook_port,
            insecure=True,
        )

    # Without management the configuration is installed with the manifests
    if injector_settings.webhook_managed:
        settings_obj.admission.managed = WEBHOOK_CONFIGURATION_NAME
    else:
        settings_obj.admission.managed = None

    logger.info(
        f"Admission webhook on port {injector_settings.webhook_port} "
        f"(tls: {injector_settings.webhook_tls_enabled}, "
        f"managed configuration: {injector_settings.webhook_managed})"
    )
    return settings_obj


@kopf.on.startup()
async def startup_handler(memo: kopf.Memo, **_) -> None:
    """
    Webhook startup.

    Loads the Kubernetes configuration, creates the CMStateStore shared by
    all admission requests through the memo, and starts the metrics server.
    """
    logger.info("Starting CMState injector...")

    load_kubernetes_config()
    memo.store = CMStateStore(
        request_timeout=injector_settings.admission_timeout_seconds
    )

    global _global_metrics_server
    metrics_server = MetricsServer(
        port=injector_settings.metrics_port, host=injector_settings.metrics_host
    )
    try:
        await metrics_server.start()
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")
    else:
        metrics_server.ready = True
        _global_metrics_server = metrics_server


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    """Stop the metrics server on shutdown."""
    logger.info("Shutting down CMState injector...")

    global _global_metrics_server
    if _global_metrics_server:
        _global_metrics_server.ready = False
        await _global_metrics_server.stop()
        _global_metrics_server = None


def main() -> None:
    """
    Main entry point for the webhook.

    This function:
    1. Configures logging and tracing
    2. Configures the admission webhook server (must be before kopf.run())
    3. Runs kopf in standalone mode; there are no watched resources to
       coordinate between replicas
    """
    configure_logging()
    configure_tracing()

    settings_obj = build_operator_settings()

    try:
        kopf.run(standalone=True, clusterwide=True, settings=settings_obj)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except Exception as e:
        logger.error(f"Webhook failed with error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
