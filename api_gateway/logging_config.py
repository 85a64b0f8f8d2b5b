"""
Structured logging setup for the gateway.

Routes structlog through the standard library so uvicorn's own loggers and
the gateway's events share one level and one output stream.
"""

import logging
import sys

import structlog
from structlog.typing import Processor


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ...)
        log_format: "json" for log aggregation, "console" for local development
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
