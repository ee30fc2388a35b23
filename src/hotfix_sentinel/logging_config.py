"""
Process-wide logging setup for the hotfix-sentinel CLI and worker.

``setup_logging`` is called once by the CLI from the ``[logging]`` config
section. Library modules only call ``logging.getLogger(__name__)``; the
handlers installed here add the batch, incident, message and action IDs
of the current run to every line.

Example:
    >>> from hotfix_sentinel.logging_config import setup_logging
    >>> setup_logging(level='DEBUG', json_format=True)
    >>> # {"level": "INFO", "message": "Classified as code_fixable", "incident_id": "..."}
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from .logging_context import ContextFilter, JSONFormatter


_LOGGING_CONFIGURED = False

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s%(correlation)s'

# requests and urllib3 log every connection at DEBUG, drowning out the gateway lines
NOISY_LOGGERS = ("urllib3", "requests", "google", "httpx")


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str | Path] = None,
    json_format: bool = False,
    log_format: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> None:
    """
    Install stdout and optional rotating-file handlers on the root logger.

    A second call only changes the level, so tests and the CLI's
    ``--debug``/``--quiet`` flags can adjust verbosity without duplicating handlers.

    Args:
        level: Root level name, e.g. 'INFO'
        log_file: Also write to this file, rotated at ``max_bytes``
        json_format: One JSON object per line for log shippers
        log_format: Plain-text format; ``%(correlation)s`` expands to the IDs
        max_bytes: Rotation size of ``log_file``
        backup_count: Rotated files kept
    """
    global _LOGGING_CONFIGURED

    root_logger = logging.getLogger()

    if _LOGGING_CONFIGURED:
        root_logger.setLevel(getattr(logging, level.upper()))
        return

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(log_format or DEFAULT_FORMAT)
    context_filter = ContextFilter()

    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))

    _LOGGING_CONFIGURED = True

    logging.getLogger(__name__).info(
        f"Logging at {level.upper()}" + (f", also to {log_file}" if log_file else "")
    )


def reset_logging_config() -> None:
    """Drop the root handlers so the next ``setup_logging`` starts fresh."""
    global _LOGGING_CONFIGURED

    logging.getLogger().handlers.clear()
    _LOGGING_CONFIGURED = False
