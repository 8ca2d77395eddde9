"""BaseService — foundation for all shelfctl services.

Every service receives a :class:`LibraryStore` at construction time and
owns its transaction boundaries via ``self._store.transaction()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from shelfctl.domain.ids import TYPE_PREFIXES, validate_id
from shelfctl.services.result import ErrorCode, ServiceError, ServiceResult

if TYPE_CHECKING:
    from shelfctl.infrastructure.store import LibraryStore

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class CatalogService(BaseService):
            def add_book(self, title: str, ...) -> ServiceResult:
                with self._store.transaction() as txn:
                    ...
    """

    def __init__(self, store: LibraryStore) -> None:
        self._store = store

    @staticmethod
    def _fail(op: str, code: str, message: str, **detail: Any) -> ServiceResult:
        """Build a failed ServiceResult."""
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail),
        )

    @classmethod
    def _not_found(cls, op: str, entity: str, record_id: str) -> ServiceResult:
        message = f"No {entity} found with ID: {record_id}"
        if entity in TYPE_PREFIXES and not validate_id(record_id, entity):
            message += f" (expected {TYPE_PREFIXES[entity]}NNNN)"
        return cls._fail(
            op,
            ErrorCode.NOT_FOUND,
            message,
            entity=entity,
            id=record_id,
        )

    @classmethod
    def _busy(cls, op: str, reason: str) -> ServiceResult:
        return cls._fail(op, ErrorCode.BUSY, f"Resource busy, retry later: {reason}", retryable=True)

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Dispatch a notification event. No-op if event bus not initialized.

        INVARIANT: Notifier failures are warnings, never errors.
        """
        bus = self._store.event_bus
        if bus is None:
            return
        try:
            bus.dispatch(hook_name, payload)
        except Exception:
            logger.warning("Event dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Event dispatch failed for {hook_name}")
