"""Structured logging for the service.

Every logger carries a set of *dimensions* (index name, run id, ...) that are
attached to each record, so log lines from concurrent runs can be told apart.
"""

import json
import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

from indexsync.core.config import settings

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys() | {"message", "asctime"}
)


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON with their dimensions inlined."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the record."""
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key != "dimensions" and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ReadableFormatter(logging.Formatter):
    """Human readable format for local development."""

    def __init__(self):
        """Initialize with the local development layout."""
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and append its dimensions."""
        line = super().format(record)
        dims = getattr(record, "dimensions", None)
        if dims:
            line = f"{line} {dims}"
        return line


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches dimensions to every record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[Dict[str, Any]] = None):
        """Wrap ``logger`` with the given dimensions."""
        super().__init__(logger, {})
        self.dimensions: Dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        """Merge dimensions into the record's ``extra``."""
        extra = dict(self.dimensions)
        extra.update(kwargs.get("extra") or {})
        extra["dimensions"] = self.dimensions
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a child logger with additional dimensions."""
        merged = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, merged)


class LoggerConfigurator:
    """Builds configured contextual loggers."""

    _configured = False

    @classmethod
    def _configure_root(cls) -> None:
        if cls._configured:
            return
        handler = logging.StreamHandler(sys.stdout)
        if settings.LOCAL_DEVELOPMENT:
            handler.setFormatter(ReadableFormatter())
        else:
            handler.setFormatter(JSONFormatter())
        root = logging.getLogger("indexsync")
        root.handlers = [handler]
        root.setLevel(settings.LOG_LEVEL.upper())
        root.propagate = False
        cls._configured = True

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[Dict[str, Any]] = None
    ) -> ContextualLogger:
        """Return a contextual logger for ``name`` with the given dimensions.

        Args:
            name: Dotted logger name, normally under ``indexsync``
            dimensions: Key/value pairs attached to every record

        Returns:
            ContextualLogger instance
        """
        cls._configure_root()
        return ContextualLogger(logging.getLogger(name), dimensions)


logger = LoggerConfigurator.configure_logger("indexsync")
