"""Shared dependencies: structured logger, error types and executable lookup."""

import json
import logging
import shutil
from typing import Any

from ripsearch.config import get_settings


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    # Attributes every LogRecord carries; anything else came from `extra=`.
    _RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        data: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        for key, value in vars(record).items():
            if key not in self._RESERVED:
                data[key] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    settings = get_settings()
    logger = logging.getLogger("ripsearch")
    logger.setLevel(getattr(logging, settings.log_level.upper()))
    logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


logger = setup_logging()


class SearchError(Exception):
    """Base exception for search operations."""

    pass


class InvalidParametersError(SearchError):
    """Raised when search parameters cannot be run (blank query, bad root)."""

    pass


class SpawnError(SearchError):
    """Raised when the search executable cannot be launched."""

    pass


class StreamIOError(SearchError):
    """Raised when reading the search process output fails after spawn."""

    pass


class SessionStateError(SearchError):
    """Raised when an operation is not valid in the session's current state."""

    pass


def locate_executable(configured: str | None = None) -> str:
    """Resolve the ripgrep executable.

    Args:
        configured: Explicit path from settings, used as-is when given

    Returns:
        Path or name of the executable to launch

    Raises:
        SpawnError: If no executable is configured and `rg` is not on PATH
    """
    if configured:
        return configured
    found = shutil.which("rg")
    if found is None:
        raise SpawnError("ripgrep (rg) not found; set RG_PATH or install ripgrep")
    return found
