"""
Process-wide JSON logging for the tile server.

Each record becomes one line on stdout:
    {"t": 1760860800123, "lvl": "WARNING", "name": "bundle.compact_v1",
     "msg": "Invalid tile length", "extra": {"tile": "4/2/2", "length": 1000001}}

Pass per-request context as extra={"extra": {...}}; it lands under "extra".
"""
from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional

_CONFIGURED_FLAG = "_tileserver_configured"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        context = getattr(record, "extra", None)
        if isinstance(context, dict):
            payload["extra"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # paths and exceptions in the context are not JSON types
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level_from(name: Optional[str]) -> int:
    """LOG_LEVEL-style name -> logging constant; unknown names fall back to INFO."""
    lvl = getattr(logging, (name or "INFO").upper(), None)
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    """
    Install the JSON handler on the root logger.

    The handler is installed once per process. Later calls only adjust the level,
    and only when `level` is given, so the server's configured level can override
    the default picked up when modules first asked for a logger.
    """
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG, False):
        if level:
            root.setLevel(_level_from(level))
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level_from(level or os.environ.get("LOG_LEVEL")))
    setattr(root, _CONFIGURED_FLAG, True)


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
