from __future__ import annotations

import logging
import time
from typing import Any, Dict

import orjson


_EXTRA_KEYS = ("record_id", "target", "path", "status", "count", "returncode", "elapsed_s")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "time": getattr(record, "asctime", None) or time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        }
        for k in _EXTRA_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode()


def get_logger(name: str = "wsksync") -> logging.Logger:
    logger = logging.getLogger(name)
    if name.startswith("wsksync."):
        # children propagate to the package logger, which owns the handler
        get_logger("wsksync")
        return logger
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        h = logging.StreamHandler()
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
    return logger


def set_level(level: str) -> None:
    get_logger().setLevel(level.upper())
