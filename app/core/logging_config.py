"""
Logging configuration for the ResumeCraft API.

Console logging always; a rotating file under LOG_DIR when one is set.
Webhook payloads pass through sanitize_log_data before they are logged.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from app.core import config

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "stripe", "urllib3", "sqlalchemy.engine")

SENSITIVE_KEYS = (
    "password", "token", "secret", "key", "code",
    "database_url", "authorization", "cookie",
)
REDACTED = "***REDACTED***"


def _file_handler(log_dir: str, level: int) -> RotatingFileHandler:
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path / config.LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None):
    """
    Configure the root logger.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        log_dir: Directory for the rotating log file; defaults to LOG_DIR
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    log_dir = config.LOG_DIR if log_dir is None else log_dir

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    if log_dir:
        root.addHandler(_file_handler(log_dir, level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def sanitize_log_data(data: Optional[dict]) -> dict:
    """Copy of data with secret-looking keys redacted, nested dicts included."""
    sanitized = {}
    for key, value in (data or {}).items():
        if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value
    return sanitized
