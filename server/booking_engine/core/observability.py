"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

from .config import settings

SERVICE_NAME = "resort-booking-engine"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total pending bookings created',
    ['rate_plan_id'],
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    'bookings_confirmed_total',
    'Total bookings confirmed',
    ['rate_plan_id'],
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'bookings_cancelled_total',
    'Total bookings cancelled',
    ['from_status'],
    registry=REGISTRY
)

BOOKINGS_EXPIRED = Counter(
    'bookings_expired_total',
    'Total pending bookings expired by the sweeper',
    registry=REGISTRY
)

INVENTORY_REJECTIONS = Counter(
    'inventory_rejections_total',
    'Reservations rejected for insufficient inventory',
    ['rate_plan_id'],
    registry=REGISTRY
)

CONFLICT_RETRIES = Counter(
    'persistence_conflict_retries_total',
    'Operations retried after a persistence conflict',
    ['operation'],
    registry=REGISTRY
)

SWEEPER_RUNS = Counter(
    'reservation_sweeper_runs_total',
    'Reservation sweeper iterations',
    ['outcome'],
    registry=REGISTRY
)

OCCUPANCY_RATE = Gauge(
    'rate_plan_occupancy_ratio',
    'Occupancy of a rate plan over the last requested range',
    ['rate_plan_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    # request_id is bound into contextvars by RequestIDMiddleware
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())

    # Export only when an OTLP collector is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the SQLAlchemy engine with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(rate_plan_id: str):
        BOOKINGS_CREATED.labels(rate_plan_id=rate_plan_id).inc()

    @staticmethod
    def record_booking_confirmed(rate_plan_id: str):
        BOOKINGS_CONFIRMED.labels(rate_plan_id=rate_plan_id).inc()

    @staticmethod
    def record_booking_cancelled(from_status: str):
        BOOKINGS_CANCELLED.labels(from_status=from_status).inc()

    @staticmethod
    def record_booking_expired():
        BOOKINGS_EXPIRED.inc()

    @staticmethod
    def record_inventory_rejection(rate_plan_id: str):
        """Record a reservation refused for lack of rooms."""
        INVENTORY_REJECTIONS.labels(rate_plan_id=rate_plan_id).inc()

    @staticmethod
    def record_conflict_retry(operation: str):
        CONFLICT_RETRIES.labels(operation=operation).inc()

    @staticmethod
    def record_sweeper_run(outcome: str):
        """Record one sweeper iteration, outcome is "ok" or "partial"."""
        SWEEPER_RUNS.labels(outcome=outcome).inc()

    @staticmethod
    def set_occupancy(rate_plan_id: str, occupancy: float):
        OCCUPANCY_RATE.labels(rate_plan_id=rate_plan_id).set(occupancy)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


def get_logger(name: str):
    """Get a structlog logger bound to a component name."""
    return structlog.get_logger(name).bind(component=name)
