"""Centralized webhook settings using pydantic-settings.

This module provides a single source of truth for all webhook configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Webhook configuration loaded from environment variables.

    All settings have sensible defaults for an in-cluster deployment. Override
    via environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable per-request correlation IDs in logs",
    )
    log_health_checks: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_CHECKS",
        description="Log health check and metrics scrape requests",
    )
    webhook_log_level: str = Field(
        default="INFO",
        validation_alias="WEBHOOK_LOG_LEVEL",
        description="Log level for the admission webhook handlers",
    )

    # Admission webhook server
    webhook_host: str = Field(
        default="0.0.0.0",
        validation_alias="WEBHOOK_HOST",
        description="Host address to bind the admission webhook server",
    )
    webhook_port: int = Field(
        default=9443,
        validation_alias="WEBHOOK_PORT",
        description="Port for the admission webhook server",
    )
    webhook_cert_dir: str = Field(
        default="/tmp/k8s-webhook-server/serving-certs",
        validation_alias="WEBHOOK_CERT_DIR",
        description="Directory holding tls.crt and tls.key for the webhook server",
    )
    webhook_tls_enabled: bool = Field(
        default=True,
        validation_alias="WEBHOOK_TLS_ENABLED",
        description="Serve the webhook over HTTPS (disable only for local testing)",
    )
    webhook_managed: bool = Field(
        default=False,
        validation_alias="WEBHOOK_MANAGED",
        description=(
            "Let the webhook create and maintain its MutatingWebhookConfiguration "
            "(otherwise it is installed with the deployment manifests)"
        ),
    )
    admission_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="ADMISSION_TIMEOUT_SECONDS",
        description="Upper bound for handling a single admission request",
    )

    # Metrics and observability
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )
    metrics_port: int = Field(
        default=8080,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics and health endpoints",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="TRACING_ENABLED",
        description="Export an OpenTelemetry span per admission request",
    )
    otel_exporter_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="OTLP gRPC collector endpoint",
    )
    otel_service_name: str = Field(
        default="cmstate-injector",
        validation_alias="OTEL_SERVICE_NAME",
        description="Service name reported on spans",
    )
    otel_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        validation_alias="OTEL_SAMPLE_RATE",
        description="Sampling rate for requests without a propagated trace",
    )
    otel_insecure: bool = Field(
        default=True,
        validation_alias="OTEL_EXPORTER_OTLP_INSECURE",
        description="Connect to the collector without TLS",
    )

    @property
    def certfile(self) -> Path:
        return Path(self.webhook_cert_dir) / "tls.crt"

    @property
    def keyfile(self) -> Path:
        return Path(self.webhook_cert_dir) / "tls.key"


# Global settings instance - initialized once at module import
settings = Settings()
