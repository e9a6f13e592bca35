"""Logging configuration for canvas-core.

canvas-core modules only ever log through ``logging.getLogger``; structured
fields travel in ``extra={"extra_fields": {...}}``. Applications embedding
the client may call ``configure_logging`` once at startup to get console
and rotating-file output, optionally as JSON lines.
"""

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

LIBRARY_LOGGER = "canvas_core"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


@contextmanager
def log_performance(operation: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Context manager logging how long an operation took at DEBUG level.

    Args:
        operation: Name of the operation
        logger: Logger to use (default: the library logger)
    """
    if logger is None:
        logger = logging.getLogger(LIBRARY_LOGGER)

    start_time = time.perf_counter()
    success = False
    try:
        yield
        success = True
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "%s completed in %.2fms (success=%s)",
            operation,
            duration_ms,
            success,
            extra={
                "extra_fields": {
                    "event_type": "performance",
                    "operation": operation,
                    "duration_ms": round(duration_ms, 2),
                    "success": success,
                }
            },
        )


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    use_json: bool = False,
    console_output: bool = True,
) -> None:
    """Configure root logging handlers with optional JSON formatting.

    Parameters
    ----------
    log_file: Path, optional
        If provided, logs will be written to this file with rotation.  The
        directory will be created if it does not exist.
    level: int
        Logging level (e.g. ``logging.INFO`` or ``logging.DEBUG``).
    max_bytes: int
        Maximum size of each log file before rotation.
    backup_count: int
        Number of rotated log files to keep.
    use_json: bool
        If True, use JSON structured logging format.
    console_output: bool
        If True, enable console output handler.
    """
    # Prevent duplicate handlers if configure_logging is called multiple times
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(level)

    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
