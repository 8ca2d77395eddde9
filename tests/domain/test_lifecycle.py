"""Tests for loan status transitions and copy-count rules."""

import pytest

from shelfctl.domain.lifecycle import (
    LOAN_TRANSITIONS,
    InvariantViolation,
    LoanStatus,
    copy_count_problems,
    expected_available,
    is_valid_transition,
    resize_available,
)


class TestLoanStatus:
    def test_members(self) -> None:
        assert {s.value for s in LoanStatus} == {"active", "returned"}

    def test_transitions(self) -> None:
        assert is_valid_transition("active", "returned")
        assert not is_valid_transition("returned", "active")
        assert not is_valid_transition("returned", "returned")

    def test_unknown_status_has_no_transitions(self) -> None:
        assert not is_valid_transition("lost", "returned", LOAN_TRANSITIONS)


class TestCopyCountProblems:
    def test_consistent_book(self) -> None:
        assert copy_count_problems(3, 1, 2) == []

    def test_counter_drift(self) -> None:
        problems = copy_count_problems(3, 2, 2)
        assert len(problems) == 1
        assert "3 total - 2 active loans = 1" in problems[0]

    def test_negative_available(self) -> None:
        problems = copy_count_problems(1, -1, 2)
        assert any("negative" in p for p in problems)

    def test_available_above_total(self) -> None:
        problems = copy_count_problems(2, 3, 0)
        assert any("exceeds" in p for p in problems)


class TestResizeAvailable:
    def test_grow(self) -> None:
        assert resize_available(5, 2) == 3

    def test_shrink_to_active(self) -> None:
        assert resize_available(2, 2) == 0

    def test_below_active_rejected(self) -> None:
        with pytest.raises(InvariantViolation) as exc_info:
            resize_available(1, 2)
        assert exc_info.value.detail == {"total_copies": 1, "active_loans": 2}

    def test_expected_available(self) -> None:
        assert expected_available(4, 1) == 3
