"""
Registry Observability

Structured logging for the registry and its CLI. Every record carries the
component that produced it and the correlation id of the current CLI
invocation; registry mutations add the operation name, duration and, on
failure, the registry error code.

    registry / cli ──► RegistryLogger (LoggerAdapter)
                              │  component, operation, error_code,
                              │  duration_ms, context=<remaining kwargs>
                              ▼
                    "revreg" logger ──► StreamHandler
                                         └─ JsonLineFormatter | text

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import functools
import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, MutableMapping, Tuple, TypeVar

from revreg.errors import RegistryError

ROOT_LOGGER = "revreg"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Keyword arguments the stdlib logging call itself understands.
_STDLIB_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})
# Keyword arguments promoted to top-level JSON fields.
_PROMOTED = ("operation", "error_code", "duration_ms")
_OPTIONAL_FIELDS = ("component", "operation", "duration_ms", "error_code", "context")

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "revreg_correlation_id", default=""
)


# ─────────────────────────────────────────────────────────────────────────────
# Correlation ids
# ─────────────────────────────────────────────────────────────────────────────

def generate_correlation_id() -> str:
    return "corr-" + uuid.uuid4().hex[:12]


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    return _correlation_id.set(correlation_id)


def get_correlation_id() -> str:
    """Current id; one is minted and kept if none is set."""
    current = _correlation_id.get()
    if current:
        return current
    minted = generate_correlation_id()
    _correlation_id.set(minted)
    return minted


# ─────────────────────────────────────────────────────────────────────────────
# Output
# ─────────────────────────────────────────────────────────────────────────────

class JsonLineFormatter(logging.Formatter):
    """One JSON object per record. Empty optional fields are left out."""

    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = _correlation_id.get()
        if correlation_id:
            doc["correlation_id"] = correlation_id

        for name in _OPTIONAL_FIELDS:
            value = getattr(record, name, None)
            if value is None or value == "" or value == {}:
                continue
            doc[name] = value

        if record.exc_info:
            doc["exception"] = self.formatException(record.exc_info)
        return json.dumps(doc, default=str)


def configure_logging(level: str = "info", fmt: str = "json", stream: Any = None) -> logging.Logger:
    """
    Point the ``revreg`` logger tree at ``stream`` (stderr by default).

    Replaces any handler installed by an earlier call, so the CLI can
    reconfigure after reading its config file.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.upper())
    for old in root.handlers[:]:
        root.removeHandler(old)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonLineFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    return root


class RegistryLogger(logging.LoggerAdapter):
    """
    Logger for one registry component.

    ``log.info("published", operation="publish", key=k)`` puts ``operation``
    in its own field and everything else unknown to logging under ``context``.
    """

    def __init__(self, component: str):
        super().__init__(logging.getLogger(f"{ROOT_LOGGER}.{component}"), {})
        self.component = component

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        call = {k: kwargs.pop(k) for k in list(kwargs) if k in _STDLIB_KWARGS}
        extra = dict(call.pop("extra", None) or {})
        extra["component"] = self.component
        for name in _PROMOTED:
            if name in kwargs:
                extra[name] = kwargs.pop(name)
        extra["context"] = dict(kwargs)
        call["extra"] = extra
        return msg, call


def get_logger(component: str) -> RegistryLogger:
    return RegistryLogger(component)


# ─────────────────────────────────────────────────────────────────────────────
# Operation timing
# ─────────────────────────────────────────────────────────────────────────────

F = TypeVar("F", bound=Callable[..., Any])


def timed_operation(name: str) -> Callable[[F], F]:
    """
    Log duration and outcome of a method on an object with a ``log`` attribute.

    Success logs at INFO. Failure logs at WARNING with the registry error
    code (``Internal`` for anything else) and re-raises.
    """
    def decorate(method: F) -> F:
        @functools.wraps(method)
        def timed(self: Any, *args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            failure = ""
            try:
                return method(self, *args, **kwargs)
            except RegistryError as e:
                failure = e.code
                raise
            except Exception:
                failure = "Internal"
                raise
            finally:
                elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
                if failure:
                    self.log.warning(
                        f"Operation {name} failed",
                        operation=name, error_code=failure, duration_ms=elapsed_ms,
                    )
                else:
                    self.log.info(f"Operation {name} completed", operation=name, duration_ms=elapsed_ms)
        return timed  # type: ignore[return-value]
    return decorate
