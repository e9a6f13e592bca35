"""Tests for logging infrastructure."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from canvas_core.core.logging_setup import JSONFormatter, configure_logging, log_performance


@pytest.fixture
def root_logger():
    """Root logger; handlers installed by configure_logging are removed afterwards."""
    root = logging.getLogger()
    saved_level = root.level
    yield root
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


def make_record(msg="Test message", **kwargs) -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=kwargs.get("exc_info"),
    )


class TestJSONFormatter:
    """Tests for JSON structured logging formatter."""

    def test_basic(self):
        """Test basic JSON formatting."""
        log_data = json.loads(JSONFormatter().format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "test.logger"
        assert log_data["message"] == "Test message"
        assert log_data["line"] == 42
        assert "timestamp" in log_data

    def test_extra_fields(self):
        """Test structured fields are merged into the output."""
        record = make_record()
        record.extra_fields = {"event_type": "rate_limit", "rate": 1.0}

        log_data = json.loads(JSONFormatter().format(record))

        assert log_data["event_type"] == "rate_limit"
        assert log_data["rate"] == 1.0

    def test_exception(self):
        """Test exception text is included."""
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        log_data = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in log_data["exception"]


class TestLogPerformance:
    """Tests for the log_performance context manager."""

    def test_success(self, caplog):
        logger = logging.getLogger("test.perf")
        with caplog.at_level(logging.DEBUG, logger="test.perf"):
            with log_performance("probe", logger):
                pass

        record = caplog.records[-1]
        assert "probe completed" in record.getMessage()
        assert record.extra_fields["success"] is True

    def test_failure(self, caplog):
        """Test the timing is logged when the block raises."""
        logger = logging.getLogger("test.perf")
        with caplog.at_level(logging.DEBUG, logger="test.perf"):
            with pytest.raises(RuntimeError):
                with log_performance("probe", logger):
                    raise RuntimeError("fail")

        assert caplog.records[-1].extra_fields["success"] is False


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_and_file(self, root_logger, tmp_path):
        """Test console and rotating file handlers are installed."""
        # Clear existing handlers
        root_logger.handlers.clear()
        log_file = tmp_path / "logs" / "canvas.log"
        configure_logging(log_file=log_file)

        assert len(root_logger.handlers) == 2
        assert log_file.parent.exists()

    def test_json_file_output(self, root_logger, tmp_path):
        """Test JSON lines are written to the log file."""
        # Clear existing handlers
        root_logger.handlers.clear()
        log_file = tmp_path / "canvas.log"
        configure_logging(log_file=log_file, use_json=True, console_output=False)

        logging.getLogger("canvas_core.test").info("hello")
        for handler in root_logger.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "hello"

    def test_no_duplicates(self, root_logger, tmp_path):
        """Test calling twice does not add handlers."""
        # Clear existing handlers
        root_logger.handlers.clear()
        configure_logging(log_file=tmp_path / "canvas.log")
        count = len(root_logger.handlers)
        configure_logging(log_file=tmp_path / "canvas.log")
        assert len(root_logger.handlers) == count
