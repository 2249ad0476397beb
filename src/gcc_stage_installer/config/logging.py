"""Structured logging for the installer tools.

Log events go through structlog into the stdlib root logger, which writes
to stderr and, when configured, to a rotating file. stdout is left to the
commands' own progress output.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, List, Optional

import structlog
from structlog.types import FilteringBoundLogger, Processor

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _processors(json_logs: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def _add_file_handler(log_file: str, level: int) -> None:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.getLogger().addHandler(handler)


def configure_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    json_logs: bool = False,
) -> FilteringBoundLogger:
    """Set up structlog and the root logger.

    Args:
        level: Level name; unknown names fall back to WARNING
        log_file: Also append events to this file, rotated at 10MB
        json_logs: Render events as JSON lines instead of console text

    Returns:
        The root structlog logger
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    # force=True drops handlers left by an earlier call in the same process
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )
    if log_file:
        _add_file_handler(log_file, numeric_level)

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger()


def get_logger(name: str, **initial_context: Any) -> FilteringBoundLogger:
    """Return a logger for ``name`` with ``initial_context`` bound."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger
