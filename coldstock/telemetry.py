"""OpenTelemetry configuration for the Coldstock application."""

import sys

from opentelemetry import metrics, trace
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import start_http_server

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


def setup_telemetry(app) -> bool:
    """Configure OpenTelemetry tracing and metrics for the FastAPI application.

    Returns:
        True when instrumentation was installed
    """
    try:
        if not settings.enable_telemetry:
            return False

        if "pytest" in sys.modules:
            logger.info("Skipping OpenTelemetry setup during tests")
            return False

        prometheus_reader = PrometheusMetricReader()
        metrics.set_meter_provider(MeterProvider(metric_readers=[prometheus_reader]))

        metrics_port = settings.metrics_port
        try:
            start_http_server(metrics_port)
        except OSError:
            metrics_port += 1
            start_http_server(metrics_port)
        logger.info("Prometheus metrics server started", port=metrics_port)

        trace.set_tracer_provider(TracerProvider())
        tracer_provider = trace.get_tracer_provider()

        # Console exporter until an OTLP collector is deployed
        span_processor = BatchSpanProcessor(ConsoleSpanExporter())
        tracer_provider.add_span_processor(span_processor)  # type: ignore[attr-defined]

        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")

        SQLAlchemyInstrumentor().instrument()
        logger.info("SQLAlchemy instrumentation enabled")

        logger.info("OpenTelemetry tracing and metrics setup completed")
        return True

    except Exception as e:
        # Telemetry must never prevent the service from starting
        logger.error("Failed to setup OpenTelemetry", error=str(e))
        return False
