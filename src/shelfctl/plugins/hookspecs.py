"""Pluggy hook specifications for circulation notifications.

Both hooks fire after the circulation transaction has committed and its
locks are released. They run on the EventBus thread pool; nothing they
return is consumed and nothing they raise reaches the caller.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("shelfctl")


class ShelfctlHookSpec:
    """Hook specifications for the shelfctl plugin system."""

    @hookspec
    def notify_issued(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        issued_at: str,
    ) -> None:
        """Called after a copy is issued to a member."""

    @hookspec
    def notify_returned(
        self,
        member_contact: str,
        member_name: str,
        book_title: str,
        returned_at: str,
    ) -> None:
        """Called after a loan is returned."""
