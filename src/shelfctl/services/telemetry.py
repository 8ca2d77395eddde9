"""Telemetry — ``@traced`` timing for service operations.

Near-zero overhead when disabled (single ContextVar.get per call).
When enabled via --verbose, each traced call logs a ``span.complete``
event and its timing is injected into ``ServiceResult.meta``.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any, ParamSpec, TypeVar

import structlog

from shelfctl.services.result import ServiceResult

_verbose_enabled: ContextVar[bool] = ContextVar("_verbose_enabled", default=False)

_P = ParamSpec("_P")
_R = TypeVar("_R")


def _inject_meta(result: ServiceResult, span: dict[str, Any]) -> ServiceResult:
    """Return a copy of *result* with span data merged into meta (it is frozen)."""
    merged = {**(result.meta or {}), "telemetry": span}
    return result.model_copy(update={"meta": merged})


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Decorator: time a service method and record the span when verbose."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _verbose_enabled.get():
            return func(*args, **kwargs)

        log = structlog.get_logger("shelfctl.telemetry")
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            log.debug("span.complete", span_name=func.__qualname__, duration_ms=round(elapsed, 2), ok=False)
            raise

        elapsed = round((time.perf_counter() - start) * 1000, 2)
        span: dict[str, Any] = {"name": func.__qualname__, "duration_ms": elapsed}
        if isinstance(result, ServiceResult):
            span["ok"] = result.ok
            result = _inject_meta(result, span)  # type: ignore[assignment]
        log.debug("span.complete", span_name=func.__qualname__, duration_ms=elapsed, ok=span.get("ok", True))
        return result

    return wrapper


def enable_telemetry() -> None:
    """Enable verbose telemetry (called by AppContext at startup)."""
    _verbose_enabled.set(True)


def disable_telemetry() -> None:
    _verbose_enabled.set(False)


def telemetry_enabled() -> bool:
    return _verbose_enabled.get()
