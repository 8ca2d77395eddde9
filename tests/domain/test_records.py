"""Tests for book and member record validation."""

from shelfctl.domain.records import normalize_email, normalize_isbn, validate_book, validate_member


def _book(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "title": "Dune",
        "author": "Frank Herbert",
        "isbn": "978-0-441-01359-3",
        "category": "Fiction",
        "total_copies": 2,
    }
    data.update(overrides)
    return data


class TestValidateBook:
    def test_valid(self) -> None:
        vr = validate_book(_book())
        assert vr.valid
        assert vr.cleaned["isbn"] == "9780441013593"

    def test_missing_fields(self) -> None:
        vr = validate_book({"title": "Dune"})
        assert not vr.valid
        assert "author is required" in vr.errors
        assert "isbn is required" in vr.errors

    def test_blank_title(self) -> None:
        vr = validate_book(_book(title="   "))
        assert "title must not be empty" in vr.errors

    def test_isbn10_with_check_x(self) -> None:
        vr = validate_book(_book(isbn="0-8044-2957-x"))
        assert vr.valid
        assert vr.cleaned["isbn"] == "080442957X"

    def test_bad_isbn(self) -> None:
        assert not validate_book(_book(isbn="12345")).valid

    def test_zero_copies(self) -> None:
        assert not validate_book(_book(total_copies=0)).valid

    def test_bool_is_not_a_count(self) -> None:
        assert not validate_book(_book(total_copies=True)).valid

    def test_partial_checks_only_given_keys(self) -> None:
        vr = validate_book({"category": "History"}, partial=True)
        assert vr.valid
        assert vr.cleaned == {"category": "History"}


class TestValidateMember:
    def test_valid_lowercases_email(self) -> None:
        vr = validate_member({"name": "Ada", "email": " Ada@Example.ORG ", "phone": "555"})
        assert vr.valid
        assert vr.cleaned["email"] == "ada@example.org"

    def test_bad_email(self) -> None:
        vr = validate_member({"name": "Ada", "email": "not-an-email", "phone": "555"})
        assert not vr.valid

    def test_missing_phone(self) -> None:
        vr = validate_member({"name": "Ada", "email": "ada@example.org"})
        assert "phone is required" in vr.errors


class TestNormalize:
    def test_isbn(self) -> None:
        assert normalize_isbn("978 0 441 01359 3") == "9780441013593"

    def test_email(self) -> None:
        assert normalize_email("  X@Y.Z ") == "x@y.z"
