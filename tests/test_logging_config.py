"""
Unit tests for logging setup and log redaction.
"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from app.core import config
from app.core.logging_config import setup_logging, sanitize_log_data, REDACTED


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_file_handler_uses_configured_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOG_DIR", str(tmp_path / "logs"))

    setup_logging("debug")

    root = logging.getLogger()
    file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    assert root.level == logging.DEBUG
    assert len(file_handlers) == 1
    assert (tmp_path / "logs" / config.LOG_FILE).exists()
    assert logging.getLogger("stripe").level == logging.WARNING


def test_empty_log_dir_logs_to_console_only(monkeypatch):
    monkeypatch.setattr(config, "LOG_DIR", "")

    setup_logging("nonsense")

    root = logging.getLogger()
    assert root.level == logging.INFO
    assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)


def test_sanitize_redacts_nested_secrets():
    data = {
        "userId": "7",
        "plan": "pro",
        "stripe_webhook_secret": "whsec_x",
        "headers": {"Authorization": "Bearer abc", "accept": "json"},
    }

    sanitized = sanitize_log_data(data)

    assert sanitized["userId"] == "7"
    assert sanitized["stripe_webhook_secret"] == REDACTED
    assert sanitized["headers"] == {"Authorization": REDACTED, "accept": "json"}
    assert data["stripe_webhook_secret"] == "whsec_x"
    assert sanitize_log_data(None) == {}
