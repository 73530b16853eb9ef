from __future__ import annotations

from time import perf_counter
from typing import Any, Callable

from opentelemetry import propagate, trace
from opentelemetry.trace import SpanKind, Status, StatusCode
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from structlog.typing import FilteringBoundLogger

from demo_app.observability.correlation import set_request_context, with_trace


class TracingMiddleware:
    """Starts a server span per request and attaches a trace-correlated logger."""

    def __init__(self, app: Callable[..., Any], tracer: trace.Tracer, logger: FilteringBoundLogger) -> None:
        self.app = app
        self.tracer = tracer
        self.logger = logger

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path")
        method = scope.get("method")
        carrier = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers") or []
        }
        parent = propagate.extract(carrier)

        with self.tracer.start_as_current_span(
            f"{method} {path}",
            context=parent,
            kind=SpanKind.SERVER,
            attributes={"http.method": method, "http.target": path},
        ) as span:
            span_context = span.get_span_context()
            logger = with_trace(self.logger)
            set_request_context(Request(scope), logger)

            start = perf_counter()
            status_code: int = 500

            async def send_wrapper(message: dict[str, Any]) -> None:
                nonlocal status_code

                if message.get("type") == "http.response.start":
                    status_code = int(message.get("status", 500))
                    if span_context.is_valid:
                        headers = MutableHeaders(scope=message)
                        headers["X-Trace-ID"] = trace.format_trace_id(span_context.trace_id)

                await send(message)

            try:
                await self.app(scope, receive, send_wrapper)
            finally:
                elapsed_ms = (perf_counter() - start) * 1000.0

                span.set_attribute("http.status_code", status_code)
                if status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR, f"HTTP {status_code}"))

                logger.info(
                    "http_request",
                    method=method,
                    path=path,
                    status_code=status_code,
                    elapsed_ms=round(elapsed_ms, 2),
                )
