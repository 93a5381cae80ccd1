"""
OpenTelemetry tracing for reconcile runs.

Library code only opens spans through trace_operation() and
trace_statement(); they go to whatever tracer provider is installed
globally, which is a no-op until the CLI calls initialize_tracing().

Span layout of one reconcile:

    reconcile
      load_snapshot
        db.select
      compute_diff
      apply_diff
        db.delete / db.update / db.insert ...
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "table_sync"

_provider: TracerProvider | None = None


def initialize_tracing(
    service_name: str = "table-sync",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a tracer provider exporting to OTLP and/or the console.

    Args:
        service_name: service.name resource attribute
        otlp_endpoint: OTLP gRPC collector, e.g. "localhost:4317"
            (default: OTLP_ENDPOINT environment variable)
        console_export: Also print spans to stdout (or TRACE_CONSOLE=true)
    """
    global _provider

    if _provider is not None:
        logger.warning("Tracing already initialized")
        return get_tracer()

    otlp_endpoint = otlp_endpoint or os.getenv("OTLP_ENDPOINT")
    console_export = console_export or os.getenv("TRACE_CONSOLE", "").lower() == "true"

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))

    if otlp_endpoint:
        # grpc is heavy to import; only pay for it when exporting
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        logger.info(f"Exporting traces to {otlp_endpoint}")

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _provider = provider
    return get_tracer()


def shutdown_tracing() -> None:
    """Flush pending spans. Safe to call when tracing was never initialized."""
    global _provider

    if _provider is None:
        return

    try:
        _provider.shutdown()
    finally:
        _provider = None


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(INSTRUMENTATION_NAME)


def _span_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    # OpenTelemetry only takes primitives; keys and values of any type are stringified
    return {
        name: value if isinstance(value, (str, bool, int, float)) else str(value)
        for name, value in attributes.items()
        if value is not None
    }


@contextmanager
def trace_operation(
    name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes: Any,
) -> Iterator[trace.Span]:
    """
    Run the block inside a span named `name`.

    An exception escaping the block is recorded on the span, marks it as
    failed and propagates unchanged.
    """
    with get_tracer().start_as_current_span(
        name, kind=kind, attributes=_span_attributes(attributes)
    ) as span:
        yield span


def trace_statement(operation: str, table: str, db_system: str):
    """Client span for one SQL statement, with database semantic attributes."""
    return trace_operation(
        f"db.{operation.lower()}",
        kind=trace.SpanKind.CLIENT,
        **{
            "db.system": db_system,
            "db.operation": operation,
            "db.sql.table": table,
        },
    )
