"""Tests for src.logging_config."""

import logging
from contextlib import contextmanager

from src.logging_config import setup_logging


@contextmanager
def bare_root_logger():
    """Temporarily strip the root logger's handlers, restoring them on exit."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers.clear()
    try:
        yield root
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


class TestSetupLogging:
    def test_writes_debug_to_file(self, tmp_path):
        with bare_root_logger() as root:
            log_file = setup_logging("WARNING", log_dir=tmp_path / "logs")
            logging.getLogger("src.queue_analytics.scoring").debug("scored %d accounts", 3)
            for handler in root.handlers:
                handler.flush()

        assert log_file == tmp_path / "logs" / "queue_rankings.log"
        text = log_file.read_text(encoding="utf-8")
        assert "Logging initialized" in text
        assert "src.queue_analytics.scoring - DEBUG - scored 3 accounts" in text

    def test_console_uses_requested_level(self, tmp_path):
        with bare_root_logger() as root:
            setup_logging("WARNING", log_dir=tmp_path)
            levels = {type(h).__name__: h.level for h in root.handlers}

        assert levels["StreamHandler"] == logging.WARNING
        assert levels["RotatingFileHandler"] == logging.DEBUG

    def test_second_call_is_noop(self, tmp_path):
        with bare_root_logger() as root:
            setup_logging(log_dir=tmp_path)
            second = setup_logging(log_dir=tmp_path)
            handler_count = len(root.handlers)

        assert second is None
        assert handler_count == 2
