"""
Structured JSON Logging Utilities for the Vector Store.

Every event the adapter emits is a single-line JSON object, so that index
lifecycle and failures can be filtered by field (`index`, `count`, `error`)
in whatever log platform collects them. Records are routed through the
standard `logging` module under the `codeindex_valkey` logger, which leaves
handlers and levels to the host application.

Standard Fields Automatically Included:
- `ts`: An ISO 8601 timestamp in UTC.
- `service`: The name of this package ("codeindex-valkey").
- `env`: The deployment environment.
- `version`: The installed package version.
- `level`: The normalized log severity.
- `msg`: The event name.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

from . import SERVICE_NAME, __version__

_ENV = os.getenv("CODEINDEX_ENV", "local")
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

logger = logging.getLogger("codeindex_valkey")


def _normalize_level(level: str) -> str:
    """
    Ensures that a log level is a valid, uppercase string.

    Unknown levels fall back to `INFO`.
    """
    level_upper = level.upper()
    return level_upper if level_upper in _VALID_LEVELS else "INFO"


def log_event(level: str, msg: str, **fields: Any) -> None:
    """
    Emits a structured, single-line JSON log entry.

    Example Usage:
    ```python
    log_event("INFO", "index_created", index="ws-0123456789abcdef", vector_size=1536)
    ```

    Args:
        level: The severity level of the log (e.g., "INFO", "ERROR").
        msg: The event name.
        **fields: Arbitrary keyword arguments added as key-value pairs to the
                  root of the JSON log object.
    """
    normalized = _normalize_level(level)
    record = {
        "ts": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
        "env": _ENV,
        "version": __version__,
        "level": normalized,
        "msg": msg,
    }
    record.update(fields)
    logger.log(
        logging.getLevelName(normalized),
        json.dumps(record, separators=(",", ":"), default=str),
    )
