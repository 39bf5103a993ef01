"""Structured logging for the Resilience Assessment service.

Every module obtains its logger with ``get_logger(__name__)`` and logs
events as a message plus key-value context::

    logger.info("Assessment scoring complete", overall_score=72.5, area_count=4)
"""

import logging
import sys

import structlog

from resilience_assessment.settings import Settings


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given module name.

    Args:
        name: Logger name, normally ``__name__``.

    Returns:
        A structlog bound logger accepting keyword context.
    """
    return structlog.get_logger(name)


def configure_logging(settings: Settings) -> None:
    """Configure structlog and stdlib logging from service settings.

    Args:
        settings: Service settings; ``log_level`` and ``log_json`` are used.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: structlog.types.Processor
    if settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
