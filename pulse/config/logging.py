import logging
import sys
from typing import Any

import structlog

from .settings import Settings
from .settings import settings as default_settings

# Handler installed on the root logger by the last setup_logging() call
_root_handler: logging.Handler | None = None


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging with structlog.

    Request handling logs through structlog directly. The engine's loops,
    repositories and handlers use standard library loggers with ``extra=``
    fields; those records are rendered by the same processor chain so both
    end up in one consistent stream.
    """
    global _root_handler

    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    # JSON formatting for production, pretty printing for development
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer()
    )
    exc_processor: Any = (
        structlog.processors.StackInfoRenderer()
        if settings.debug
        else structlog.processors.format_exc_info
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                *shared_processors,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.ExtraAdder(),
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                exc_processor,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    if _root_handler is not None:
        root.removeHandler(_root_handler)
    root.addHandler(handler)
    root.setLevel(level)
    _root_handler = handler

    structlog.configure(
        processors=[
            *shared_processors,
            exc_processor,
            # Add caller information in development
            structlog.processors.CallsiteParameterAdder(
                parameters=(
                    [structlog.processors.CallsiteParameter.FUNC_NAME]
                    if settings.debug
                    else []
                )
            ),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Add request-specific context to all log messages."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)
