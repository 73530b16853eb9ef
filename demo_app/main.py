from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TextIO

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.trace.export import SpanExporter

from demo_app.api.root import router as root_router
from demo_app.config import Settings, get_settings
from demo_app.observability.logging import build_logger
from demo_app.observability.middleware import TracingMiddleware
from demo_app.observability.tracing import get_tracer, init_tracer_provider
from demo_app.services.workload import Workload


def create_app(
    settings: Settings | None = None,
    *,
    span_exporter: SpanExporter | None = None,
    log_stream: TextIO | None = None,
) -> FastAPI:
    """Application factory.

    Raises ``TracingSetupError`` when the tracer provider can't be built.
    """

    settings = settings or get_settings()
    logger = build_logger(settings, stream=log_stream)
    tracer_provider = init_tracer_provider(settings, exporter=span_exporter)
    tracer = get_tracer(tracer_provider)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if tracer_provider is not None:
            trace.set_tracer_provider(tracer_provider)
        logger.info(
            "service started",
            tracing_enabled=tracer_provider is not None,
            collector_endpoint=settings.otel_collector_endpoint or None,
        )
        try:
            yield
        finally:
            if tracer_provider is not None:
                tracer_provider.shutdown()
            logger.info("service stopped")

    app = FastAPI(title="Trace-correlated logging demo", version=settings.app_version or "0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.logger = logger
    app.state.tracer = tracer
    app.state.workload = Workload(tracer=tracer, logger=logger, settings=settings)

    app.add_middleware(TracingMiddleware, tracer=tracer, logger=logger)
    app.include_router(root_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
