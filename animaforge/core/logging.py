"""
Structured logging for the animaforge services.

Services log through the "animaforge" logger, either directly with `extra=`
or through `log_event`, which fills the common correlation fields (request,
user, identity, event type) and truncates free-form values. Production
renders one JSON object per line; development renders a single readable
line with the identity and event context inline.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

LOGGER_NAME = "animaforge"
TRUNCATE_AT = 500

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Context shown inline by the pretty formatter, in this order.
_PRETTY_CONTEXT = ("user_id", "identity_id", "event_type", "error_code")


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms")):
        if latency_ms < bound:
            return label
    return ">=1000ms"


def structured_fields(record: logging.LogRecord) -> Dict[str, object]:
    """Fields attached to `record` through `extra=`, minus the ones left unset."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and key != "request_id" and value is not None
    }


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            **structured_fields(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rid = getattr(record, "request_id", None)
        context = " ".join(
            f"{key}={getattr(record, key)}" for key in _PRETTY_CONTEXT if getattr(record, key, None) is not None
        )
        line = f"{_timestamp(record)} {record.levelname} [{record.name}]"
        if rid:
            line += f" [rid={rid}]"
        line += f" {record.getMessage()}"
        if context:
            line += f" ({context})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development", level: str = "INFO") -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _safe_truncate(value, limit: int = TRUNCATE_AT):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    identity_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """
    Emit one domain event on the animaforge logger.

    `level` is a logger method name ("info", "warning", ...). Values in
    `extra` are stringified and cut at TRUNCATE_AT characters; keys that
    collide with LogRecord attributes are prefixed with "x_".
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "identity_id": identity_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        fields[f"x_{key}" if key in _RECORD_ATTRS else key] = _safe_truncate(value)

    getattr(logger, level, logger.info)(msg, extra=fields)
