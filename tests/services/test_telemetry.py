"""Tests for the @traced decorator."""

from __future__ import annotations

from shelfctl.services.result import ServiceResult
from shelfctl.services.telemetry import disable_telemetry, enable_telemetry, telemetry_enabled, traced


@traced
def _op() -> ServiceResult:
    return ServiceResult(ok=True, op="probe")


@traced
def _plain() -> int:
    return 7


class TestTraced:
    def test_disabled_leaves_result_untouched(self) -> None:
        disable_telemetry()
        assert not telemetry_enabled()
        assert _op().meta is None

    def test_enabled_injects_span(self) -> None:
        enable_telemetry()
        result = _op()
        span = result.meta["telemetry"]
        assert span["name"].endswith("_op")
        assert span["ok"] is True
        assert span["duration_ms"] >= 0

    def test_non_result_return_passes_through(self) -> None:
        enable_telemetry()
        assert _plain() == 7
