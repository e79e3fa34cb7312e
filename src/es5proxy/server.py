"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build the Starlette app
- Run it under uvicorn on the configured host and port
"""

from __future__ import annotations

import logging
import sys

import structlog
import uvicorn

from es5proxy import __version__
from es5proxy.app import create_app
from es5proxy.config import Settings

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def run_http_server(settings: Settings) -> None:
    """Serve the proxy until interrupted. Exits non-zero if the port is taken."""
    log.info(
        "server_starting",
        version=__version__,
        host=settings.server.host,
        port=settings.server.port,
        environment=settings.server.environment,
    )
    if not settings.server.is_production:
        log.warning("server_debug_errors_enabled", environment=settings.server.environment)

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    run_http_server(settings)


if __name__ == "__main__":
    main()
