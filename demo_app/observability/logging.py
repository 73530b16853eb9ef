from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, TextIO

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

from demo_app.config import Settings


DEFAULT_LOGGER_NAME = "demo-app"

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_STACK_SEVERITIES = {"ERROR", "CRITICAL"}


def parse_log_level(value: str | None) -> int:
    """Map a level name to a stdlib level; anything unrecognised means INFO."""

    if not value:
        return logging.INFO
    return _LEVELS.get(value.strip().lower(), logging.INFO)


def _level_to_severity(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict["severity"] = event_dict.pop("level").upper()
    return event_dict


def _add_timestamp(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    # RFC3339 with nanoseconds; the fraction drops trailing zeros.
    seconds, nanos = divmod(time.time_ns(), 1_000_000_000)
    stamp = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{nanos:09d}".rstrip("0")
    event_dict["time"] = f"{stamp}.{fraction}Z" if fraction else f"{stamp}Z"
    return event_dict


def _render_caller(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    filename = event_dict.pop("filename", None)
    lineno = event_dict.pop("lineno", None)
    if filename:
        event_dict["caller"] = f"{filename}:{lineno}"
    return event_dict


def _request_stack_on_error(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Ask for the call stack on error lines that carry no exception."""

    if event_dict.get("severity") not in _STACK_SEVERITIES:
        return event_dict
    # Foreign stdlib records: the current stack belongs to the formatter.
    if event_dict.get("_record") is not None:
        return event_dict
    if not event_dict.get("exc_info"):
        event_dict.setdefault("stack_info", True)
    return event_dict


def _render_stacktrace(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    exception = event_dict.pop("exception", None)
    stack = event_dict.pop("stack", None)
    if exception or stack:
        event_dict["stacktrace"] = exception or stack
    return event_dict


def _static_fields(**fields: Any) -> Processor:
    def processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def _shared_processors() -> list[Processor]:
    return [
        structlog.processors.add_log_level,
        _level_to_severity,
        _add_timestamp,
        structlog.processors.CallsiteParameterAdder(
            {CallsiteParameter.FILENAME, CallsiteParameter.LINENO},
        ),
        _render_caller,
        _request_stack_on_error,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _render_stacktrace,
        structlog.processors.EventRenamer("message"),
    ]


def build_logger(
    settings: Settings,
    stream: TextIO | None = None,
    name: str = DEFAULT_LOGGER_NAME,
) -> FilteringBoundLogger:
    """Build the process-wide JSON logger.

    The logger is constructed explicitly instead of through ``structlog.configure``
    so it can be handed around as a value. ``bind()`` on the result returns a new
    logger writing to the same stream; the original never changes.
    """

    level = parse_log_level(settings.log_level)
    logger = structlog.wrap_logger(
        structlog.PrintLogger(file=stream or sys.stdout),
        processors=[*_shared_processors(), structlog.processors.JSONRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        cache_logger_on_first_use=False,
    )
    return logger.bind(
        logger=name,
        service=settings.service_name,
        version=settings.app_version,
    )


def configure_stdlib_logging(settings: Settings, stream: TextIO | None = None) -> logging.Handler:
    """Render stdlib ``logging`` records with the same JSON layout.

    Replaces the root handlers; returns the installed handler.
    """

    level = parse_log_level(settings.log_level)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            _static_fields(service=settings.service_name, version=settings.app_version),
            *_shared_processors(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # Keep uvicorn's own loggers consistent with our handler.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.propagate = False
        logger.setLevel(level)

    return handler
