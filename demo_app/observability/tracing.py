from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter

from demo_app.config import Settings


TRACER_NAME = "demo-app"


class TracingSetupError(RuntimeError):
    """The tracer provider or its exporter could not be built."""


def init_tracer_provider(settings: Settings, exporter: SpanExporter | None = None) -> TracerProvider | None:
    """Build the SDK tracer provider, or ``None`` when tracing is disabled.

    An explicit ``exporter`` is flushed synchronously on every span end. Otherwise
    spans go to the OTLP collector in batches when an endpoint is configured, and
    are recorded but not exported when it isn't.
    """

    if not settings.tracing_enabled:
        return None

    try:
        resource = Resource.create(
            {
                SERVICE_NAME: settings.service_name,
                SERVICE_VERSION: settings.app_version,
            }
        )
        provider = TracerProvider(resource=resource)

        if exporter is not None:
            provider.add_span_processor(SimpleSpanProcessor(exporter))
        elif settings.otel_collector_endpoint:
            otlp_exporter = OTLPSpanExporter(
                endpoint=settings.otel_collector_endpoint,
                insecure=settings.otel_collector_insecure,
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    except Exception as exc:
        raise TracingSetupError(f"error setting up trace provider: {exc}") from exc

    return provider


def get_tracer(provider: TracerProvider | None) -> trace.Tracer:
    if provider is None:
        return trace.NoOpTracer()
    return provider.get_tracer(TRACER_NAME)
