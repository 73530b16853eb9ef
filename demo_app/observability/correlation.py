"""Bind OpenTelemetry trace/span ids onto structlog loggers."""

from __future__ import annotations

from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry.context import Context
from starlette.requests import Request
from structlog.typing import FilteringBoundLogger


TRACE_ID_KEY = "trace_id"
SPAN_ID_KEY = "span_id"


def with_trace(logger: FilteringBoundLogger, context: Context | None = None) -> FilteringBoundLogger:
    """Return ``logger`` bound to the ids of the span active in ``context``.

    ``context`` defaults to the current OpenTelemetry context. Each id is only bound
    when it is non-zero; with no usable span the same logger object comes back.
    """

    span_context = trace.get_current_span(context).get_span_context()

    fields: dict[str, str] = {}
    if span_context.trace_id != trace.INVALID_TRACE_ID:
        fields[TRACE_ID_KEY] = trace.format_trace_id(span_context.trace_id)
    if span_context.span_id != trace.INVALID_SPAN_ID:
        fields[SPAN_ID_KEY] = trace.format_span_id(span_context.span_id)

    if not fields:
        return logger
    return logger.bind(**fields)


@dataclass(frozen=True)
class RequestContext:
    logger: FilteringBoundLogger
    trace_id: str | None = None
    span_id: str | None = None


def set_request_context(request: Request, logger: FilteringBoundLogger) -> RequestContext:
    """Attach an already-correlated logger to the request."""

    span_context = trace.get_current_span().get_span_context()
    ctx = RequestContext(
        logger=logger,
        trace_id=trace.format_trace_id(span_context.trace_id) if span_context.is_valid else None,
        span_id=trace.format_span_id(span_context.span_id) if span_context.is_valid else None,
    )
    request.state.request_context = ctx
    return ctx


def get_request_context(request: Request) -> RequestContext | None:
    return getattr(request.state, "request_context", None)


def get_request_logger(request: Request) -> FilteringBoundLogger:
    """Logger attached to the request, or the application's base logger."""

    ctx = get_request_context(request)
    if ctx is not None:
        return ctx.logger
    return request.app.state.logger
