"""NotificationService — inspect and retry undelivered notifications."""

from __future__ import annotations

from shelfctl.services.base import BaseService
from shelfctl.services.result import ServiceResult
from shelfctl.services.telemetry import traced


class NotificationService(BaseService):
    """Wraps the event WAL for the ``events`` commands."""

    @traced
    def list_undelivered(self) -> ServiceResult:
        op = "events_list"
        bus = self._store.event_bus
        events = bus.pending() if bus is not None else []
        return ServiceResult(ok=True, op=op, data={"events": events, "count": len(events)})

    @traced
    def drain(self) -> ServiceResult:
        """Retry every pending or failed notification once, synchronously."""
        op = "events_drain"
        bus = self._store.event_bus
        if bus is None:
            return ServiceResult(
                ok=True,
                op=op,
                data={"events": [], "count": 0},
                warnings=["Event bus not initialized; nothing to drain"],
            )
        results = bus.drain()
        delivered = sum(1 for r in results if r["status"] == "completed")
        warnings = [
            f"Event {r['id']} ({r['hook_name']}) still {r['status']}"
            for r in results
            if r["status"] != "completed"
        ]
        return ServiceResult(
            ok=True,
            op=op,
            data={"events": results, "count": len(results), "delivered": delivered},
            warnings=warnings,
        )
