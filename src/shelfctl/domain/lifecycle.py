"""Loan lifecycle and copy-count rules.

A loan is created ``active`` by an issue transaction and moves exactly
once, irreversibly, to ``returned``. A book's available counter is
derived state:

    available_copies == total_copies - count(active loans)

Everything in this module is pure; the circulation service applies it
inside a locked DB transaction.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class InvariantViolation(Exception):
    """A book's copy counters and its loan ledger have diverged.

    Never expected in normal operation: it means an earlier write bypassed
    the circulation rules. Carries structured *detail* for alerting.
    """

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class LoanStatus(StrEnum):
    """Ledger status of a loan."""

    ACTIVE = "active"
    RETURNED = "returned"


LOAN_TRANSITIONS: dict[str, list[str]] = {
    "active": ["returned"],
    "returned": [],
}


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]] = LOAN_TRANSITIONS,
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(current, [])
    return target in allowed


def expected_available(total_copies: int, active_loans: int) -> int:
    """The available-copy count implied by the ledger."""
    return total_copies - active_loans


def copy_count_problems(total_copies: int, available_copies: int, active_loans: int) -> list[str]:
    """Describe every way a book's counters disagree with its ledger.

    Returns an empty list for a consistent book.
    """
    problems: list[str] = []
    if total_copies < 1:
        problems.append(f"total_copies={total_copies} is below 1")
    if available_copies < 0:
        problems.append(f"available_copies={available_copies} is negative")
    if available_copies > total_copies:
        problems.append(
            f"available_copies={available_copies} exceeds total_copies={total_copies}"
        )
    expected = expected_available(total_copies, active_loans)
    if available_copies != expected:
        problems.append(
            f"available_copies={available_copies} but {total_copies} total "
            f"- {active_loans} active loans = {expected}"
        )
    return problems


def resize_available(total_copies: int, active_loans: int) -> int:
    """Available count after an administrative change of *total_copies*.

    Raises:
        InvariantViolation: If *total_copies* cannot cover the active loans.
    """
    if total_copies < active_loans:
        msg = (
            f"total_copies={total_copies} is below the {active_loans} "
            "copies currently on loan"
        )
        raise InvariantViolation(msg, total_copies=total_copies, active_loans=active_loans)
    return expected_available(total_copies, active_loans)
