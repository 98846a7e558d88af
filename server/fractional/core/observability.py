"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging
import sys

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Histogram, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "fractional-settlement-api"
SERVICE_VERSION = "1.0.0"

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
SETTLEMENTS = Counter(
    'payment_settlements_total',
    'Payment events settled, by purpose and outcome',
    ['purpose', 'outcome'],
    registry=REGISTRY
)

DUPLICATE_EVENTS = Counter(
    'payment_duplicate_events_total',
    'Payment events ignored because their external id was already recorded',
    ['provider'],
    registry=REGISTRY
)

RECONCILIATION_REQUIRED = Counter(
    'payment_reconciliation_required_total',
    'Payments recorded whose allocation could not be applied',
    ['purpose'],
    registry=REGISTRY
)

BASIS_POINTS_RECORDED = Counter(
    'ownership_basis_points_recorded_total',
    'Basis points of ownership recorded',
    ['collection_id'],
    registry=REGISTRY
)

BOOKING_TRANSITIONS = Counter(
    'booking_transitions_total',
    'Booking status transitions',
    ['status'],
    registry=REGISTRY
)


def add_trace_context(logger, method_name, event_dict):
    """Add trace context to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict['trace_id'] = format(ctx.trace_id, '032x')
        event_dict['span_id'] = format(ctx.span_id, '016x')
    return event_dict


def setup_structured_logging():
    """
    Configure structured logging with structlog.

    Module loggers use the standard library (``logging.getLogger(__name__)``
    with ``extra={...}``); the root handler renders those records through
    structlog so the extra fields, the bound request id and the trace context
    land in the same structured line as native structlog events.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    # Configure structlog
    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors + [
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.log_level))


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())
    trace.set_tracer_provider(provider)

    # Setup OTLP exporter (if OTLP endpoint is configured)
    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    # Setup OTLP metric exporter (if configured)
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        """Record one served HTTP request."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    @staticmethod
    def record_settlement(purpose: str, outcome: str):
        """Record the outcome of one settled payment event."""
        SETTLEMENTS.labels(purpose=purpose, outcome=outcome).inc()

    @staticmethod
    def record_duplicate_event(provider: str):
        """Record a redelivered payment event."""
        DUPLICATE_EVENTS.labels(provider=provider).inc()

    @staticmethod
    def record_reconciliation_required(purpose: str):
        """Record a payment that was kept without its allocation."""
        RECONCILIATION_REQUIRED.labels(purpose=purpose).inc()

    @staticmethod
    def record_ownership(collection_id: int, basis_points: int):
        """Record basis points of ownership written to the ledger."""
        BASIS_POINTS_RECORDED.labels(collection_id=str(collection_id)).inc(basis_points)

    @staticmethod
    def record_booking_transition(status: str):
        """Record a booking entering a status."""
        BOOKING_TRANSITIONS.labels(status=status).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
