"""
Catalog OpenTelemetry Instrumentation Setup

OpenTelemetry configuration for the FastAPI application.

This module provides:
- Tracer provider with service resource attributes
- OTLP gRPC exporter for sending spans to a collector
- Instrumentation for FastAPI, SQLAlchemy and Redis
- Correlation ID context shared with structured logging
"""

import logging
from contextvars import ContextVar
from typing import Any, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.semconv.resource import ResourceAttributes
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings

logger = logging.getLogger(__name__)

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class OpenTelemetryManager:
    """Owns the tracer provider and library instrumentation."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._initialized = False
        self._tracer_provider: Optional[TracerProvider] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, app: FastAPI) -> bool:
        """
        Install the tracer provider and instrument FastAPI and Redis.

        Must run before the application starts serving, since FastAPI
        instrumentation adds middleware.

        Returns:
            True if tracing export is active, False if disabled or failed
        """
        if self._initialized:
            logger.warning("OpenTelemetry already initialized")
            return True

        if not self._settings.OTEL_ENABLED:
            logger.info("OpenTelemetry export disabled")
            return False

        try:
            resource = Resource.create(
                {
                    ResourceAttributes.SERVICE_NAME: self._settings.OTEL_SERVICE_NAME,
                    ResourceAttributes.SERVICE_VERSION: self._settings.OTEL_SERVICE_VERSION,
                    ResourceAttributes.DEPLOYMENT_ENVIRONMENT: self._settings.ENVIRONMENT,
                }
            )
            self._tracer_provider = TracerProvider(resource=resource)
            self._tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=self._settings.OTEL_EXPORTER_OTLP_ENDPOINT,
                        insecure=True,
                    ),
                    max_queue_size=2048,
                    max_export_batch_size=512,
                )
            )
            trace.set_tracer_provider(self._tracer_provider)

            FastAPIInstrumentor.instrument_app(
                app, excluded_urls="health,metrics"
            )
            RedisInstrumentor().instrument()

            self._initialized = True
            logger.info(
                "OpenTelemetry instrumentation initialized",
                extra={
                    "service_name": self._settings.OTEL_SERVICE_NAME,
                    "endpoint": self._settings.OTEL_EXPORTER_OTLP_ENDPOINT,
                },
            )
            return True

        except Exception as e:
            # Tracing is optional; the service runs without it
            logger.error(
                f"Failed to initialize OpenTelemetry instrumentation: {e}",
                exc_info=True,
            )
            return False

    def instrument_engine(self, engine: AsyncEngine) -> None:
        """Trace SQL statements issued through the engine."""
        if not self._initialized:
            return

        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
        logger.info("SQLAlchemy instrumentation enabled")

    def shutdown(self) -> None:
        """Flush pending spans and shut the provider down."""
        if not self._initialized:
            return

        if self._tracer_provider:
            self._tracer_provider.shutdown()
        RedisInstrumentor().uninstrument()
        self._initialized = False
        logger.info("OpenTelemetry instrumentation shutdown completed")


def add_span_attribute(key: str, value: Any) -> None:
    """
    Add attribute to current span.

    Args:
        key: Attribute key
        value: Attribute value
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        span.set_attribute(key, value)


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID in current context and span."""
    _correlation_id.set(correlation_id)
    add_span_attribute("correlation_id", correlation_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from current context."""
    return _correlation_id.get()
