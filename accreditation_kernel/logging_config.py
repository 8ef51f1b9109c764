"""Structured JSON logging for the accreditation kernel.

Every line is one JSON object. Request-scoped fields (correlation, actor,
record and project ids) come from ``LogContext`` and are merged into each
line; ``extra=`` keys passed to a logger call become top-level keys.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

_LOGGER_PREFIX = "accreditation_kernel"

_CONTEXT_FIELDS = frozenset({"correlation_id", "actor_id", "record_id", "project_id"})

_context: ContextVar[dict[str, str]] = ContextVar("accreditation_log_context", default={})


class LogContext:
    """Request-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Overlay the given fields for the duration of the block.

        ``None`` values are ignored, so callers can pass optional ids
        straight through. Unknown field names raise ``TypeError``.
        """
        unknown = set(fields) - _CONTEXT_FIELDS
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = {**_context.get(), **{k: str(v) for k, v in fields.items() if v is not None}}
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        payload.update(
            (key, val) for key, val in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # Kernel errors keep their identifiers as public attributes.
        fields.update(
            (f"exc_{k}", v) for k, v in vars(exc).items()
            if not k.startswith("_") and k != "code"
        )
        return fields


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the accreditation_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False


def configure_logging(*, level: int | str = logging.INFO, handler: logging.Handler | None = None) -> None:
    """Attach one structured handler to the kernel's logger tree.

    Calls after the first are no-ops until ``reset_logging`` runs.
    """
    global _configured
    if _configured:
        return
    _configured = True

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop the kernel's handlers and forget prior configuration (tests only)."""
    global _configured
    _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    for handler in list(kernel_logger.handlers):
        if isinstance(handler.formatter, StructuredFormatter):
            kernel_logger.removeHandler(handler)
    kernel_logger.setLevel(logging.WARNING)
