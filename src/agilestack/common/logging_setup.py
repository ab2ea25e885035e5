"""
Logging configuration for the AgileStack core.

Components log short event messages and pass context through the
standard ``extra`` mapping, e.g.::

    logger.info("Plugin installed", extra={"plugin": name, "container_id": cid})

The JSON formatter emits those extra fields as top-level keys so the logs
stay machine readable; the text formatter appends them as ``key=value``.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from .utils import now_iso

# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {
    "message",
    "asctime",
    "taskName",
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONLogFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": now_iso(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Single-line formatter for development"""

    def __init__(self):
        super().__init__(fmt="[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extra = _extra_fields(record)
        if extra:
            base += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return base


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    name: str = "agilestack",
    stream=None,
) -> logging.Logger:
    """Configure and return the AgileStack logger.

    Calling it again replaces the handler, so the level and format can be
    changed after configuration has been loaded.

    Args:
        level: Logging level name
        fmt: "json" or "text"
        name: Logger name; child loggers (``agilestack.*``) propagate to it
        stream: Output stream, defaults to stdout
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONLogFormatter() if fmt == "json" else HumanReadableFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False
    return logger


def get_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """Child logger of ``parent`` (or of the ``agilestack`` root logger)."""
    if parent is not None:
        return parent.getChild(name)
    return logging.getLogger(f"agilestack.{name}")
