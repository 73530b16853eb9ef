from __future__ import annotations

import enum
import random
import time

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from structlog.typing import FilteringBoundLogger

from demo_app.config import Settings
from demo_app.observability.correlation import with_trace


ABNORMAL_SPAN_NAME = "funcAbNormal(Oh...taking a lot of time...)"


class Outcome(enum.Enum):
    NORMAL = 200
    ABNORMAL = 500

    @property
    def status_code(self) -> int:
        return self.value


class Workload:
    """Simulated request work: a short random delay, then a normal or abnormal step.

    Each step runs in its own span and logs through a logger carrying that span's ids.
    """

    def __init__(
        self,
        tracer: trace.Tracer,
        logger: FilteringBoundLogger,
        settings: Settings,
        rng: random.Random | None = None,
    ) -> None:
        self.tracer = tracer
        self.logger = logger
        self.settings = settings
        self.rng = rng or random.Random(settings.random_seed)

    def handle(self) -> Outcome:
        with self.tracer.start_as_current_span("main handler"):
            with_trace(self.logger).info("main handler")

            max_delay = self.settings.handler_max_delay_ms
            _sleep_ms(self.rng.randrange(max_delay) if max_delay > 0 else 0)
            return self.processing()

    def processing(self) -> Outcome:
        with self.tracer.start_as_current_span("processing..."):
            with_trace(self.logger).info("processing...")

            if self.rng.random() < self.settings.abnormal_probability:
                return self._func_abnormal()
            return self._func_normal()

    def _func_normal(self) -> Outcome:
        with self.tracer.start_as_current_span("funcNormal"):
            with_trace(self.logger).info("funcNormal")
            _sleep_ms(self.settings.normal_delay_ms)
            return Outcome.NORMAL

    def _func_abnormal(self) -> Outcome:
        with self.tracer.start_as_current_span(ABNORMAL_SPAN_NAME) as span:
            logger = with_trace(self.logger)
            logger.info(ABNORMAL_SPAN_NAME)

            start = time.perf_counter()
            _sleep_ms(self.settings.abnormal_delay_ms)
            elapsed_ms = (time.perf_counter() - start) * 1000.0

            logger.error("abnormal processing took too long", elapsed_ms=round(elapsed_ms, 2))
            span.set_status(Status(StatusCode.ERROR, "abnormal processing"))
            return Outcome.ABNORMAL


def _sleep_ms(ms: int) -> None:
    if ms > 0:
        time.sleep(ms / 1000.0)
