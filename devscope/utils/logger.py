"""
Structured logging utility
"""
import logging
import json
import sys
from datetime import datetime
from typing import Optional


class JsonFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record):
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }

        # Add extra fields if present
        if hasattr(record, 'extra'):
            log_data.update(record.extra)

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Structured JSON logger"""

    def __init__(self, name: str, level: int = logging.INFO, handler: Optional[logging.Handler] = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Console handler with JSON formatter, attached once per name
        if not self.logger.handlers:
            if handler is None:
                handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)

    def info(self, message: str, **kwargs):
        """Log info message"""
        extra = {"extra": kwargs} if kwargs else {}
        self.logger.info(message, extra=extra)

    def error(self, message: str, **kwargs):
        """Log error message"""
        extra = {"extra": kwargs} if kwargs else {}
        self.logger.error(message, extra=extra)

    def warning(self, message: str, **kwargs):
        """Log warning message"""
        extra = {"extra": kwargs} if kwargs else {}
        self.logger.warning(message, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message"""
        extra = {"extra": kwargs} if kwargs else {}
        self.logger.debug(message, extra=extra)


class _SafeFileHandler(logging.FileHandler):
    """Append-only file handler that never raises into the caller"""

    def handleError(self, record):
        pass


def diagnostic_sink(path: Optional[str]) -> StructuredLogger:
    """
    Logger for the capture path.

    Appends to a local text file when a path is configured; otherwise every
    record is discarded. Nothing written here is ever sent to the collector.
    """
    if path:
        try:
            handler: logging.Handler = _SafeFileHandler(path, mode="a", delay=True)
        except OSError:
            handler = logging.NullHandler()
    else:
        handler = logging.NullHandler()

    sink = StructuredLogger(f"devscope-capture.{path or 'null'}", level=logging.DEBUG, handler=handler)
    # Keep capture diagnostics out of the host application's own log
    sink.logger.propagate = False
    return sink


# Global logger instance
logger = StructuredLogger("devscope")
