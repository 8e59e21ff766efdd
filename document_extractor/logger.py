"""Structured logging utilities for document-extractor."""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

# Request ID shared by every log line emitted while handling one extraction call
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s - %(processName)s - %(name)s - %(levelname)s - %(message)s"


class ContextLogger:
    """Logger wrapper that renders structured data as key=value pairs."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _format_extra_data(self, extra_data: Optional[dict[str, Any]]) -> str:
        if not extra_data:
            return ""
        parts = [f"{k}={v}" for k, v in extra_data.items()]
        return " [" + ", ".join(parts) + "]"

    def _log(self, level: int, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        if not self.logger.isEnabledFor(level):
            return

        request_id = request_id_var.get()
        if request_id:
            extra_data = dict(extra_data or {})
            extra_data["request_id"] = request_id

        self.logger.log(level, msg + self._format_extra_data(extra_data), **kwargs)

    def debug(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.DEBUG, msg, extra_data, **kwargs)

    def info(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.INFO, msg, extra_data, **kwargs)

    def warning(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.WARNING, msg, extra_data, **kwargs)

    def error(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.ERROR, msg, extra_data, **kwargs)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure a single stdout handler on the root logger.

    Called once by applications, and again inside the processing host's
    child process, which starts with an unconfigured root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def current_log_level() -> str:
    """Name of the root logger's effective level, for handing to a child process."""
    return logging.getLevelName(logging.getLogger().getEffectiveLevel())


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, a new UUID is generated.

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = uuid.uuid4().hex[:12]
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_var.get()


class Timer:
    """Context manager measuring wall-clock time in fractional milliseconds."""

    def __init__(self, name: str):
        self.name = name
        self.start_time: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.elapsed_ms = None

    def stop(self) -> float:
        if self.start_time is not None and self.elapsed_ms is None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        return self.get_elapsed_ms()

    def get_elapsed_ms(self) -> float:
        """Elapsed time so far, or the frozen value once stopped."""
        if self.elapsed_ms is not None:
            return self.elapsed_ms
        if self.start_time is not None:
            return (time.perf_counter() - self.start_time) * 1000
        return 0.0
