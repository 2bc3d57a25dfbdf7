"""
Structured JSON logging for the procurement kernel.

Every record under the ``procurement_kernel`` logger is written as one JSON
object made of:

    envelope   ts, level, logger, message (the snake_case event name)
    scope      correlation_id / actor_id / order_id / receipt_id bound by
               the service call in progress (see ``LogContext.bind``)
    extra      the ``extra=`` fields of the call site
    error      for records logged with ``exc_info``: type, message and,
               for kernel errors, the code plus the error's own fields
               (e.g. order_item_id, requested_quantity, pending_quantity)
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "installed_handlers",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

from procurement_kernel.exceptions import ProcurementKernelError

ROOT_LOGGER = "procurement_kernel"

# Scope keys a service may bind; anything else passed to bind() is dropped
CONTEXT_FIELDS = ("correlation_id", "actor_id", "order_id", "receipt_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_scope: ContextVar[Mapping[str, str]] = ContextVar("procurement_log_scope", default=_EMPTY)


def _scope_fields(fields: Mapping[str, Any]) -> dict[str, str]:
    return {
        key: str(value)
        for key, value in fields.items()
        if key in CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    The order/receipt scope stamped on every record logged during a
    service call.  Held in a ContextVar, so threads and tasks each see
    their own scope.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _scope.set(MappingProxyType({**_scope.get(), **_scope_fields(fields)}))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_scope.get())

    @staticmethod
    def clear() -> None:
        _scope.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Add fields to the scope for the block; the outer scope returns on exit."""
        token = _scope.set(MappingProxyType({**_scope.get(), **_scope_fields(fields)}))
        try:
            yield
        finally:
            _scope.reset(token)


# Attributes every LogRecord carries; whatever else is on a record came from extra=
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # UUID, Decimal and anything unexpected
    return str(value)


def describe_error(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ProcurementKernelError):
        error["code"] = exc.code
        error.update(
            (key, value) for key, value in vars(exc).items() if not key.startswith("_")
        )
    return error


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_scope.get())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = describe_error(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.ledger")`` -> ``procurement_kernel.services.ledger``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


# Marks the handler configure_logging() installed, so other handlers on the
# same logger (test capture, application handlers) are left alone
_KERNEL_HANDLER = "_procurement_kernel_handler"
_configure_lock = threading.Lock()


def installed_handlers() -> list[logging.Handler]:
    """Handlers that configure_logging() attached to the kernel logger."""
    return [
        h for h in logging.getLogger(ROOT_LOGGER).handlers
        if getattr(h, _KERNEL_HANDLER, False)
    ]


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Send kernel logs as JSON lines to ``handler`` (default: a stream
    handler on ``stream`` or stderr).

    Idempotent: once a kernel handler is installed, later calls return it
    unchanged until reset_logging().
    """
    with _configure_lock:
        existing = installed_handlers()
        if existing:
            return existing[0]

        kernel_handler = handler or logging.StreamHandler(stream or sys.stderr)
        kernel_handler.setFormatter(StructuredFormatter())
        setattr(kernel_handler, _KERNEL_HANDLER, True)

        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(level)
        logger.propagate = False
        logger.addHandler(kernel_handler)
        return kernel_handler


def reset_logging() -> None:
    """Detach the kernel handler and restore default propagation."""
    with _configure_lock:
        logger = logging.getLogger(ROOT_LOGGER)
        for h in installed_handlers():
            logger.removeHandler(h)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
