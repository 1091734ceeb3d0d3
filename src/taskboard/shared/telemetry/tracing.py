"""Span decorator for service operations"""
import asyncio
from collections.abc import Callable
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from taskboard.domain.exceptions import TaskboardException

TRACER_NAME = "taskboard"

# Keyword arguments never copied onto a span
_REDACTED_ARGS = frozenset({"password", "password_hash", "token", "secret"})


def _record_arguments(span: Span, kwargs: dict[str, Any]) -> None:
    for name, value in kwargs.items():
        if name.startswith("_") or name in _REDACTED_ARGS:
            continue
        span.set_attribute(f"taskboard.arg.{name}", str(value))


def _record_failure(span: Span, error: Exception) -> None:
    if isinstance(error, TaskboardException):
        # Domain errors are outcomes the caller handles, tag them for filtering
        span.set_attribute("taskboard.error_code", error.error_code)
        span.set_attribute("taskboard.retryable", error.retryable)
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


def traced(operation_name: str | None = None, attributes: dict | None = None):
    """
    Wrap a coroutine in a span named after the operation

    Usage:
        @traced("work_item.assign")
        async def assign(self, item_id: str, owner_id: str):
            ...

    Only keyword arguments are recorded, credentials excluded. Spans are
    no-ops until the hosting process installs an OpenTelemetry SDK provider.

    Raises:
        TypeError: If applied to a plain function
    """

    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@traced only supports coroutine functions, got {func!r}")

        span_name = operation_name or f"{func.__module__}.{func.__qualname__}"

        @wraps(func)
        async def wrapper(*args, **kwargs):
            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(span_name, attributes=attributes) as span:
                _record_arguments(span, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator


def add_span_attributes(**attributes):
    """
    Tag the current span, e.g. add_span_attributes(cache_hit=True, cache_key="subject:abc")
    """
    span = trace.get_current_span()
    for key, value in attributes.items():
        span.set_attribute(f"taskboard.{key}", value)
