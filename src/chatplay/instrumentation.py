"""Optional OpenTelemetry instrumentation for chatplay.

Call ``chatplay.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the engine works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "chatplay") -> None:
    """Enable OpenTelemetry tracing for every completion request.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install chatplay[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import chatplay
        chatplay.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install chatplay[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("chatplay instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def completion_span(system: str, model: str, stream: bool):
    """Wrap one ``send()`` round-trip in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
            "chatplay.request.stream": stream,
        },
    ) as span:
        yield span


def record_telemetry(span, sample) -> None:
    """Copy derived latency and throughput from *sample* onto *span*."""
    if span is None or sample is None:
        return
    if sample.unit_count is not None:
        span.set_attribute("chatplay.stream.units", sample.unit_count)
    ttfu = sample.time_to_first_unit
    if ttfu is not None:
        span.set_attribute("chatplay.stream.time_to_first_unit_ms", ttfu)
    rate = sample.units_per_second
    if rate is not None:
        span.set_attribute("chatplay.stream.units_per_second", rate)


def record_outcome(span, status: str) -> None:
    if span is None:
        return
    span.set_attribute("chatplay.request.outcome", status)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
