from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from demo_app.config import get_settings
from demo_app.main import create_app
from demo_app.observability.logging import configure_stdlib_logging
from demo_app.observability.tracing import TracingSetupError


def main() -> None:
    parser = argparse.ArgumentParser(description="Trace-correlated logging demo service")
    parser.add_argument("--host", default=None, help="Bind address (defaults to HOST)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (defaults to PORT)")
    args = parser.parse_args()

    settings = get_settings()
    configure_stdlib_logging(settings)

    try:
        app = create_app(settings)
    except TracingSetupError:
        logging.getLogger("demo_app").critical("error setting up trace provider", exc_info=True)
        sys.exit(1)

    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
