from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

# Context is appended in this order.
LINK_KEYS = ("port", "baud_rate", "state")
FRAME_KEYS = ("frame", "reason", "field_index", "field_name", "document_id")
STATS_KEYS = ("frames", "rejected", "persisted", "failed")
_DEFAULT_EXTRA_KEYS = LINK_KEYS + FRAME_KEYS + STATS_KEYS

# Held at WARNING; at DEBUG the driver logs every insert.
_QUIET_LOGGERS = ("pymongo", "serial")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Append ``extra=`` context as ``key=value`` pairs, timestamps in UTC."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = " ".join(
            f"{key}={_render(key, value)}"
            for key, value in ((key, getattr(record, key, None)) for key in self._extra_keys)
            if value is not None
        )
        return f"{message} | {context}" if context else message


def _render(key: str, value: Any) -> str:
    # Raw frames may carry control bytes or U+FFFD; repr keeps them visible on one line.
    if key == "frame" and isinstance(value, str):
        return repr(value)
    return str(value)


def build_logging_config(level: str | int) -> dict[str, Any]:
    """Return the ``dictConfig`` payload for the ingestion daemon."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(threadName)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "extra_keys": list(_DEFAULT_EXTRA_KEYS),
            }
        },
        "handlers": {
            # stdout is reserved for the CLI's rendered output.
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "level": level,
                "formatter": "contextual",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the daemon's handlers once per process."""
    global _configured
    if _configured:
        return

    dictConfig(build_logging_config(level if level is not None else get_settings().log_level))
    _configured = True
