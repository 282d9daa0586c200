"""
Logging configuration for the Gmail to LINE notification bridge.

Everything logs through the root logger; uvicorn's own loggers propagate to
it, so server access lines share the same handlers and format.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import List, Optional


LOG_FORMATS = {
    "standard": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(funcName)s - %(message)s",
}

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "google_auth_oauthlib": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def _build_handlers(log_file: Optional[str], log_to_console: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if log_to_console:
        handlers.append(logging.StreamHandler())

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
            )
        )

    return handlers


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format: str = "standard",
):
    """
    Configure application logging.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating log file path (None = console only)
        log_to_console: Whether to log to stderr
        log_format: Key of LOG_FORMATS ('standard' or 'detailed')
    """
    formatter = logging.Formatter(LOG_FORMATS.get(log_format, LOG_FORMATS["standard"]), datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    for handler in _build_handlers(log_file, log_to_console):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    # uvicorn installs its own handlers; let records reach ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    logging.info(f"Logging configured: level={log_level}, file={log_file}")
