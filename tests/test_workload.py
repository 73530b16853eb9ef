from __future__ import annotations

import io
import json
import random

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from demo_app.config import Settings
from demo_app.observability.logging import build_logger
from demo_app.services.workload import ABNORMAL_SPAN_NAME, Outcome, Workload


def _workload(settings: Settings, exporter: InMemorySpanExporter, stream: io.StringIO) -> Workload:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return Workload(
        tracer=provider.get_tracer("test"),
        logger=build_logger(settings, stream=stream),
        settings=settings,
    )


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_normal_path_spans_and_logs() -> None:
    exporter, stream = InMemorySpanExporter(), io.StringIO()

    outcome = _workload(Settings(), exporter, stream).handle()

    assert outcome is Outcome.NORMAL
    assert outcome.status_code == 200
    spans = {span.name: span for span in exporter.get_finished_spans()}
    assert set(spans) == {"main handler", "processing...", "funcNormal"}
    assert spans["processing..."].parent.span_id == spans["main handler"].context.span_id
    assert spans["funcNormal"].parent.span_id == spans["processing..."].context.span_id

    lines = _lines(stream)
    assert [line["message"] for line in lines] == ["main handler", "processing...", "funcNormal"]
    for line in lines:
        span = spans[line["message"]]
        assert line["trace_id"] == format(span.context.trace_id, "032x")
        assert line["span_id"] == format(span.context.span_id, "016x")


def test_abnormal_path_logs_error_and_marks_span(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ABNORMAL_PROBABILITY", "1")
    exporter, stream = InMemorySpanExporter(), io.StringIO()

    outcome = _workload(Settings(), exporter, stream).handle()

    assert outcome is Outcome.ABNORMAL
    assert outcome.status_code == 500
    spans = {span.name: span for span in exporter.get_finished_spans()}
    assert ABNORMAL_SPAN_NAME in spans
    assert "funcNormal" not in spans
    assert spans[ABNORMAL_SPAN_NAME].status.status_code is StatusCode.ERROR

    errors = [line for line in _lines(stream) if line["severity"] == "ERROR"]
    assert len(errors) == 1
    assert errors[0]["span_id"] == format(spans[ABNORMAL_SPAN_NAME].context.span_id, "016x")
    assert "stacktrace" in errors[0]


def test_branch_follows_probability_with_injected_rng(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ABNORMAL_PROBABILITY", "0.5")
    settings = Settings()
    rng = random.Random(1234)
    reference = random.Random(1234)
    expected = [
        Outcome.ABNORMAL if reference.random() < 0.5 else Outcome.NORMAL
        for _ in range(20)
    ]

    workload = Workload(
        tracer=TracerProvider().get_tracer("test"),
        logger=build_logger(settings, stream=io.StringIO()),
        settings=settings,
        rng=rng,
    )

    assert [workload.processing() for _ in range(20)] == expected
