from __future__ import annotations

import io
import json
from collections.abc import AsyncIterator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from demo_app.config import get_settings
from demo_app.main import create_app


def read_log_lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SERVICE_NAME", "demo-test")
    monkeypatch.setenv("APP_VERSION", "1.2.3")
    monkeypatch.setenv("OTEL_COLLECTOR_ENDPOINT", "")
    monkeypatch.setenv("TRACING_ENABLED", "true")
    monkeypatch.setenv("ABNORMAL_PROBABILITY", "0")
    monkeypatch.setenv("HANDLER_MAX_DELAY_MS", "0")
    monkeypatch.setenv("NORMAL_DELAY_MS", "0")
    monkeypatch.setenv("ABNORMAL_DELAY_MS", "0")
    monkeypatch.setenv("RANDOM_SEED", "7")
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def make_app(log_stream: io.StringIO, span_exporter: InMemorySpanExporter) -> Callable[[], FastAPI]:
    def _make() -> FastAPI:
        get_settings.cache_clear()
        return create_app(get_settings(), span_exporter=span_exporter, log_stream=log_stream)

    return _make


@pytest.fixture
async def api_client(make_app: Callable[[], FastAPI]) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def read_logs(log_stream: io.StringIO) -> Callable[[], list[dict]]:
    return lambda: read_log_lines(log_stream)
