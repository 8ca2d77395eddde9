"""Catalog and member record validation.

Plain field rules only: required text, ISBN shape, email shape, copy
counts. Uniqueness (ISBN, email) is enforced by the store.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
_ISBN_RE = re.compile(r"^(?:\d{9}[\dX]|\d{13})$")

BOOK_FIELDS = ("title", "author", "isbn", "category", "total_copies")
MEMBER_FIELDS = ("name", "email", "phone")


@dataclass(frozen=True)
class ValidationResult:
    """Result of a record validation check."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cleaned: dict[str, Any] = field(default_factory=dict)


def normalize_isbn(isbn: str) -> str:
    """Strip hyphens and spaces, upper-case a trailing check ``x``."""
    return re.sub(r"[\s-]", "", isbn).upper()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_book(data: dict[str, Any], *, partial: bool = False) -> ValidationResult:
    """Validate book fields. With *partial*, only the given keys are checked."""
    errors: list[str] = []
    cleaned: dict[str, Any] = {}

    for key in ("title", "author", "category"):
        if key not in data:
            if not partial:
                errors.append(f"{key} is required")
            continue
        value = str(data[key] or "").strip()
        if not value:
            errors.append(f"{key} must not be empty")
        cleaned[key] = value

    if "isbn" in data:
        isbn = normalize_isbn(str(data["isbn"] or ""))
        if not _ISBN_RE.match(isbn):
            errors.append(f"isbn {data['isbn']!r} is not a valid ISBN-10 or ISBN-13")
        cleaned["isbn"] = isbn
    elif not partial:
        errors.append("isbn is required")

    if "total_copies" in data:
        copies = data["total_copies"]
        if not isinstance(copies, int) or isinstance(copies, bool) or copies < 1:
            errors.append("total_copies must be an integer of at least 1")
        cleaned["total_copies"] = copies
    elif not partial:
        errors.append("total_copies is required")

    return ValidationResult(valid=not errors, errors=errors, cleaned=cleaned)


def validate_member(data: dict[str, Any], *, partial: bool = False) -> ValidationResult:
    """Validate member fields. With *partial*, only the given keys are checked."""
    errors: list[str] = []
    cleaned: dict[str, Any] = {}

    for key in ("name", "phone"):
        if key not in data:
            if not partial:
                errors.append(f"{key} is required")
            continue
        value = str(data[key] or "").strip()
        if not value:
            errors.append(f"{key} must not be empty")
        cleaned[key] = value

    if "email" in data:
        email = normalize_email(str(data["email"] or ""))
        if not _EMAIL_RE.match(email):
            errors.append(f"email {data['email']!r} is not a valid address")
        cleaned["email"] = email
    elif not partial:
        errors.append("email is required")

    return ValidationResult(valid=not errors, errors=errors, cleaned=cleaned)
