"""Logging and telemetry for Query Bridge.

structlog is always configured. Traces and per-query metrics are exported
over OTLP only when ``otel.enabled`` is set; otherwise the metric helpers
are no-ops and spans go to the default no-op tracer.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from query_bridge.config import LogFormat, get_settings

if TYPE_CHECKING:
    from fastapi import FastAPI

    from query_bridge.config import OTelConfig

INSTRUMENTATION_NAME = "query_bridge"

_initialized = False
_tracer: trace.Tracer | None = None
_providers: list[TracerProvider | MeterProvider] = []

_query_duration_histogram: metrics.Histogram | None = None
_query_rows_counter: metrics.Counter | None = None


def get_tracer() -> trace.Tracer:
    """Get the tracer used for batch spans."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME)
    return _tracer


def record_query_duration(duration_seconds: float, status: str = "rows") -> None:
    """Record how long one query of a batch took.

    Args:
        duration_seconds: Wall time spent in the query.
        status: Outcome of the query, ``rows`` or ``error``.
    """
    if _query_duration_histogram is not None:
        _query_duration_histogram.record(duration_seconds, {"status": status})


def record_query_rows(row_count: int) -> None:
    if _query_rows_counter is not None:
        _query_rows_counter.add(row_count)


def _add_trace_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """structlog processor adding the current trace and span ids."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def configure_logging() -> None:
    """Configure structlog from the ``logging`` settings section."""
    logging_config = get_settings().logging

    if logging_config.format == LogFormat.CONSOLE:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_trace_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=logging_config.level.upper())


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or INSTRUMENTATION_NAME)


def _install_providers(otel: OTelConfig) -> None:
    """Install OTLP-exporting tracer and meter providers."""
    resource = Resource.create({SERVICE_NAME: otel.service_name})

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=otel.endpoint, insecure=otel.insecure))
    )
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otel.endpoint, insecure=otel.insecure),
        export_interval_millis=10000,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    _providers.extend([tracer_provider, meter_provider])


def _create_query_instruments() -> None:
    global _query_duration_histogram, _query_rows_counter

    meter = metrics.get_meter(INSTRUMENTATION_NAME)
    _query_duration_histogram = meter.create_histogram(
        name="query_duration_seconds",
        description="Duration of a single query in a batch",
        unit="s",
    )
    _query_rows_counter = meter.create_counter(
        name="query_rows_returned",
        description="Rows returned by successful queries",
        unit="rows",
    )


def setup_opentelemetry(app: FastAPI) -> None:
    """Configure logging and, when enabled, OTLP export and FastAPI tracing.

    Calling it again after a successful setup does nothing.
    """
    global _initialized, _tracer

    if _initialized:
        return

    configure_logging()

    otel = get_settings().otel
    if otel.enabled:
        _install_providers(otel)
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME)
        _create_query_instruments()
        FastAPIInstrumentor.instrument_app(app)

    _initialized = True


def shutdown_opentelemetry() -> None:
    """Flush and shut down installed providers."""
    while _providers:
        provider = _providers.pop()
        with contextlib.suppress(Exception):
            provider.force_flush(timeout_millis=5000)
            provider.shutdown()


def reset_observability() -> None:
    """Forget all telemetry state (for tests)."""
    global _initialized, _tracer, _query_duration_histogram, _query_rows_counter

    with contextlib.suppress(Exception):
        FastAPIInstrumentor.uninstrument()

    _initialized = False
    _tracer = None
    _providers.clear()
    _query_duration_histogram = None
    _query_rows_counter = None
