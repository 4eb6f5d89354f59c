"""
Process-wide logging setup for Ghost Operator.

Logging is configured once, at the entry point (CLI or embedding service).
Library modules only ever call ``logging.getLogger(__name__)``.

Example:
    >>> from ghost_operator.logging_config import setup_logging
    >>> setup_logging(level='DEBUG', log_file='ghost_operator.log')
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from .logging_context import JSONFormatter

_LOGGING_CONFIGURED = False

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SHORT_FORMAT = '%(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str | Path] = None,
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    json_format: bool = False,
) -> None:
    """
    Configure the root logger.

    Console output always goes to stdout. When ``log_file`` is given a
    rotating file handler is added as well. Calling this again only adjusts
    the level.

    Args:
        level: Log level name
        log_file: Optional path of a rotating log file
        log_format: Custom format string
        include_timestamp: Prefix records with ``asctime``
        max_bytes: Rotation size of the log file
        backup_count: Number of rotated files kept
        json_format: Emit one JSON object per record, with the run and
            incident ids attached
    """
    global _LOGGING_CONFIGURED

    root_logger = logging.getLogger()

    if _LOGGING_CONFIGURED:
        root_logger.setLevel(getattr(logging, level.upper()))
        return

    if log_format is None:
        log_format = DEFAULT_FORMAT if include_timestamp else SHORT_FORMAT

    formatter = JSONFormatter() if json_format else logging.Formatter(log_format)

    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {log_path}")

    _LOGGING_CONFIGURED = True
    root_logger.debug(f"Logging configured at {level} level")


def reset_logging_config() -> None:
    """Drop all root handlers so tests can reconfigure logging."""
    global _LOGGING_CONFIGURED

    logging.getLogger().handlers.clear()
    _LOGGING_CONFIGURED = False

