"""Structured JSON logging.

Every record is rendered as one JSON object with the service name, the log
schema version and, when known, the request trace id and the workspace the
record concerns. Workspace context follows background provisioning tasks,
so logs emitted deep inside the Docker adapter still carry ws_id.
"""

import logging
import sys
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from deskhub.app.config import get_settings

trace_id_ctx: ContextVar[str | None] = ContextVar("trace_id", default=None)
workspace_id_ctx: ContextVar[str | None] = ContextVar("workspace_id", default=None)


def set_trace_id(trace_id: str | None = None) -> str:
    """Bind a trace id to the current context, generating one if absent."""
    tid = trace_id or uuid4().hex
    trace_id_ctx.set(tid)
    return tid


def clear_trace_context() -> None:
    trace_id_ctx.set(None)


@contextmanager
def workspace_context(workspace_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ws_id."""
    token = workspace_id_ctx.set(workspace_id)
    try:
        yield
    finally:
        workspace_id_ctx.reset(token)


class RateLimitFilter(logging.Filter):
    """Drop repeats of the same event beyond a per-minute budget.

    Records are grouped by their ``event`` extra field (falling back to the
    message template), so a flapping engine produces a bounded number of
    container_operation_failed lines. ERROR and above always pass.
    """

    window = 60.0

    def __init__(self, rate_per_minute: int = 100) -> None:
        super().__init__()
        self.rate_per_minute = rate_per_minute
        self._seen: dict[str, deque[float]] = {}
        self._suppressed: dict[str, int] = {}

    def _key(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", None)
        return f"{record.name}:{event or record.msg}"

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self._key(record)
        now = time.monotonic()
        stamps = self._seen.setdefault(key, deque())
        while stamps and now - stamps[0] >= self.window:
            stamps.popleft()

        if len(stamps) >= self.rate_per_minute:
            self._suppressed[key] = self._suppressed.get(key, 0) + 1
            return False

        stamps.append(now)
        suppressed = self._suppressed.pop(key, 0)
        if suppressed:
            record.suppressed = suppressed
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service, schema and context fields."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        config = get_settings().logging
        self._schema_version = config.schema_version
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["schema_version"] = self._schema_version

        if trace_id := trace_id_ctx.get():
            log_record["trace_id"] = trace_id
        if "ws_id" not in log_record and (ws_id := workspace_id_ctx.get()):
            log_record["ws_id"] = ws_id

        log_record.pop("color_message", None)


def setup_logging(level: int | None = None) -> None:
    """Route the root logger (and uvicorn's) through one JSON stdout handler.

    Args:
        level: Log level. If None, uses LOGGING_LEVEL from settings.
    """
    config = get_settings().logging
    if level is None:
        level = logging.getLevelName(config.level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter())
    handler.addFilter(RateLimitFilter(config.rate_limit_per_minute))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True

    # Request lines come from LoggingMiddleware
    logging.getLogger("uvicorn.access").disabled = True
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
