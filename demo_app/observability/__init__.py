"""Logging and tracing wiring.

A JSON structlog logger built once at startup, OpenTelemetry tracing, and the
helpers that bind the active trace/span ids onto per-request loggers.
"""
