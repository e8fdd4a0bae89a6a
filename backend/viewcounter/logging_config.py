# backend/viewcounter/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

from .middleware.request_id import get_request_id

# `extra=` keys the services attach to records; copied into the JSON line when present.
STRUCTURED_FIELDS = ("counter_name", "backend", "asset_path", "client_ip")

_HANDLER_NAME = "viewcounter-json"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own time and the current request id."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            payload["request_id"] = rid

        for k in STRUCTURED_FIELDS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None, stream: Optional[IO[str]] = None) -> logging.Handler:
    """
    Install the JSON handler on the root logger. Calling it again (uvicorn reload,
    tests) replaces only our handler and leaves any others in place.
    """
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        if h.get_name() == _HANDLER_NAME:
            root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    # Pillow logs plugin discovery at DEBUG
    logging.getLogger("PIL").setLevel((os.getenv("PIL_LOG_LEVEL") or "WARNING").upper())
    return handler
