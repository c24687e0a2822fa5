"""Structured logging configuration using structlog.

- JSON lines in production, colored console output elsewhere
- stdlib loggers (redis, asyncio) routed through the same renderer
- tournament_id bound as context while a tournament is being ticked
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import Processor

from livetourney.config import Settings

_QUIET_LIBRARIES = ("redis", "asyncio")


def _processor_chain(use_json: bool) -> List[Processor]:
    chain: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    chain.append(
        structlog.processors.format_exc_info if use_json else structlog.dev.set_exc_info
    )
    return chain


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    app_env: str = "development",
) -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: Force JSON output outside production
        app_env: Production always logs JSON
    """
    use_json = json_logs or app_env == "production"
    chain = _processor_chain(use_json)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.getLevelName(log_level.upper()))

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging_from_settings(settings: Settings) -> None:
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        app_env=settings.app_env,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Module logger; log event-style names with key/value fields.

    Usage:
        logger = get_logger(__name__)
        logger.info("level_changed", tournament_id="t1", level_index=3)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every log line of the current task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
