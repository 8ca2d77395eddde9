"""MemberService — patron registration and lookup."""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, func, or_, select

from shelfctl.domain.records import MEMBER_FIELDS, validate_member
from shelfctl.infrastructure.database.schema import members
from shelfctl.infrastructure.locks import LockTimeout
from shelfctl.infrastructure.store import StoreBusy
from shelfctl.services._helpers import now_iso, page_bounds, row_dict
from shelfctl.services.base import BaseService
from shelfctl.services.result import ErrorCode, ServiceResult
from shelfctl.services.telemetry import traced


class MemberService(BaseService):
    """Member store operations."""

    @traced
    def register(self, name: str, *, email: str, phone: str) -> ServiceResult:
        op = "register_member"
        vr = validate_member({"name": name, "email": email, "phone": phone})
        if not vr.valid:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "; ".join(vr.errors))
        fields = vr.cleaned

        now = now_iso()
        try:
            with self._store.transaction() as txn:
                existing = txn.find_member_by_email(fields["email"])
                if existing is not None:
                    return self._fail(
                        op,
                        ErrorCode.DUPLICATE_EMAIL,
                        f"{fields['email']} is already registered as {existing.id}",
                        member_id=existing.id,
                    )
                member_id = txn.next_id("MEM-")
                txn.insert_member({"id": member_id, **fields, "joined": now, "modified": now})
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        return ServiceResult(ok=True, op=op, data={"id": member_id, **fields, "joined": now})

    @traced
    def get_member(self, member_id: str) -> ServiceResult:
        op = "get_member"
        try:
            with self._store.reader() as txn:
                member = txn.get_member(member_id)
                active = txn.count_active_loans(member_id=member_id) if member is not None else 0
        except StoreBusy as exc:
            return self._busy(op, str(exc))
        if member is None:
            return self._not_found(op, "member", member_id)
        return ServiceResult(ok=True, op=op, data={**row_dict(member), "active_loans": active})

    @traced
    def list_members(self, *, search: str | None = None, limit: int = 20, offset: int = 0) -> ServiceResult:
        """List members, most recently joined first."""
        op = "list_members"
        limit, offset = page_bounds(limit, offset)

        filters = []
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(
                or_(
                    func.lower(members.c.name).like(pattern),
                    members.c.email.like(pattern),
                    members.c.phone.like(pattern),
                )
            )

        try:
            with self._store.reader() as txn:
                rows = txn.conn.execute(
                    select(members)
                    .where(*filters)
                    .order_by(desc(members.c.joined), desc(members.c.id))
                    .limit(limit)
                    .offset(offset)
                ).fetchall()
                total = int(
                    txn.conn.execute(select(func.count()).select_from(members).where(*filters)).scalar_one()
                )
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "items": [row_dict(r) for r in rows],
                "count": len(rows),
                "total": total,
                "limit": limit,
                "offset": offset,
            },
        )

    @traced
    def update_member(self, member_id: str, *, changes: dict[str, Any]) -> ServiceResult:
        op = "update_member"
        unknown = sorted(set(changes) - set(MEMBER_FIELDS))
        if unknown:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, f"Unknown member fields: {unknown}")
        if not changes:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "No changes given")

        vr = validate_member(changes, partial=True)
        if not vr.valid:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "; ".join(vr.errors))
        fields = vr.cleaned

        try:
            with self._store.transaction() as txn:
                current = txn.get_member(member_id)
                if current is None:
                    return self._not_found(op, "member", member_id)
                if "email" in fields:
                    clash = txn.find_member_by_email(fields["email"])
                    if clash is not None and clash.id != member_id:
                        return self._fail(
                            op,
                            ErrorCode.DUPLICATE_EMAIL,
                            f"{fields['email']} is already registered as {clash.id}",
                            member_id=clash.id,
                        )
                txn.update_member_fields(member_id, {**fields, "modified": now_iso()})
                updated = txn.get_member(member_id)
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={**row_dict(updated), "fields_changed": sorted(fields)},
        )

    @traced
    def remove_member(self, member_id: str) -> ServiceResult:
        """Delete a member. Refused while they hold any copy."""
        op = "remove_member"
        try:
            with self._store.locked("member", member_id), self._store.transaction() as txn:
                member = txn.get_member(member_id)
                if member is None:
                    return self._not_found(op, "member", member_id)
                active = txn.count_active_loans(member_id=member_id)
                if active:
                    return self._fail(
                        op,
                        ErrorCode.ACTIVE_LOANS,
                        f"{member.name} still holds {active} book(s); cannot remove",
                        member_id=member_id,
                        active_loans=active,
                    )
                purged = txn.delete_member(member_id)
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={"id": member_id, "name": member.name, "purged_loans": purged},
        )
