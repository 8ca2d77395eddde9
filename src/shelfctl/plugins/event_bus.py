"""WAL-backed async notification dispatch via pluggy + ThreadPoolExecutor.

Each notification is written to the ``event_wal`` table before dispatch,
so a notifier that fails (or a process that exits mid-flight) leaves a
``failed`` or ``pending`` row behind. Nothing is retried automatically;
``drain()`` retries on explicit request (``shelfctl events drain``).

INVARIANT: Notifier failures are warnings, never errors.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from shelfctl.infrastructure.database.schema import event_wal
from shelfctl.services._helpers import now_iso

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from shelfctl.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = ("pending", "failed")


class EventBus:
    """WAL-backed async event dispatch.

    Parameters:
        engine: SQLAlchemy engine with the ``event_wal`` table.
        plugin_manager: Loaded PluginManager for hook dispatch.
        sync: Run hooks inline (``--sync`` and tests).
        max_retries: Attempts before an event is marked ``dead_letter``.
        max_workers: ThreadPoolExecutor worker count.
    """

    def __init__(
        self,
        engine: Engine,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_retries: int = 3,
        max_workers: int = 2,
    ) -> None:
        self._engine = engine
        self._pm = plugin_manager
        self._sync = sync
        self._max_retries = max_retries
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        )
        self._futures: list[Future[None]] = []

    @property
    def plugin_manager(self) -> PluginManager:
        return self._pm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> int:
        """Write event to WAL, then dispatch async (or sync).

        Returns the WAL event row id.
        """
        event_id = self._write_wal(hook_name, payload)

        if self._sync or self._executor is None:
            self._execute_hook(event_id, hook_name, payload)
        else:
            future = self._executor.submit(self._execute_hook, event_id, hook_name, payload)
            self._futures.append(future)

        return event_id

    def pending(self) -> list[dict[str, Any]]:
        """List events not yet delivered, oldest first."""
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(
                    event_wal.c.id,
                    event_wal.c.hook_name,
                    event_wal.c.status,
                    event_wal.c.retries,
                    event_wal.c.error,
                    event_wal.c.created,
                )
                .where(event_wal.c.status.in_([*RETRYABLE_STATUSES, "dead_letter"]))
                .order_by(event_wal.c.id)
            ).mappings().all()
        return [dict(row) for row in rows]

    def drain(self) -> list[dict[str, Any]]:
        """Retry pending/failed events synchronously.

        Returns a summary list of ``{id, hook_name, status}`` for each retried event.
        """
        self.wait()

        with self._engine.connect() as conn:
            rows = conn.execute(
                select(event_wal.c.id, event_wal.c.hook_name, event_wal.c.payload)
                .where(event_wal.c.status.in_(RETRYABLE_STATUSES))
                .order_by(event_wal.c.id)
            ).fetchall()

        results: list[dict[str, Any]] = []
        for row in rows:
            self._execute_hook(row.id, row.hook_name, json.loads(row.payload))
            with self._engine.connect() as conn:
                status = conn.execute(
                    select(event_wal.c.status).where(event_wal.c.id == row.id)
                ).scalar_one()
            results.append({"id": row.id, "hook_name": row.hook_name, "status": status})

        return results

    def wait(self, timeout: float = 30.0) -> None:
        """Block until every in-flight async dispatch has finished."""
        for future in self._futures:
            try:
                future.result(timeout=timeout)
            except Exception:
                logger.debug("Notification future did not complete cleanly", exc_info=True)
        self._futures.clear()

    def shutdown(self) -> None:
        """Shutdown the ThreadPoolExecutor, waiting for pending tasks."""
        self.wait()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write_wal(self, hook_name: str, payload: dict[str, Any]) -> int:
        """Insert a pending event into the WAL. Returns the row id."""
        with self._engine.begin() as conn:
            result = conn.execute(
                insert(event_wal).values(
                    hook_name=hook_name,
                    payload=json.dumps(payload),
                    status="pending",
                    retries=0,
                    created=now_iso(),
                )
            )
            assert result.lastrowid is not None
            return result.lastrowid

    def _execute_hook(self, event_id: int, hook_name: str, payload: dict[str, Any]) -> None:
        """Attempt to dispatch a hook. Update WAL status on success/failure."""
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            self._mark_completed(event_id)
            return

        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Notification %s (event %d) failed: %s", hook_name, event_id, exc)
            self._mark_failed(event_id, str(exc))
        else:
            self._mark_completed(event_id)

    def _mark_completed(self, event_id: int) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(status="completed", error=None, completed=now_iso())
            )

    def _mark_failed(self, event_id: int, error: str) -> None:
        """Increment retries, mark failed or dead_letter."""
        with self._engine.begin() as conn:
            retries = conn.execute(
                select(event_wal.c.retries).where(event_wal.c.id == event_id)
            ).scalar_one()

            new_retries = retries + 1
            new_status = "dead_letter" if new_retries >= self._max_retries else "failed"

            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event_id)
                .values(
                    status=new_status,
                    error=error,
                    retries=new_retries,
                    completed=now_iso() if new_status == "dead_letter" else None,
                )
            )
