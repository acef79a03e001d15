# ABOUTME: Unit tests for the Isbn value object.
# ABOUTME: Covers checksums, strict vs loose validity, conversion, UPC mapping and equality.

import pytest

from bookhunt.search.isbn import Isbn, IsbnType, is_valid_isbn


class TestIsbnParsing:
    """Tests for type detection and validity."""

    def test_isbn13_is_valid(self) -> None:
        """A correct ISBN-13 is valid in strict mode."""
        isbn = Isbn("9780306406157")
        assert isbn.type == IsbnType.ISBN13
        assert isbn.is_valid(strict=True)

    def test_isbn10_with_x_check_digit(self) -> None:
        """An X check digit is accepted at the end of an ISBN-10."""
        isbn = Isbn("080442957X")
        assert isbn.type == IsbnType.ISBN10
        assert isbn.as_text() == "080442957X"

    def test_separators_are_ignored(self) -> None:
        """Hyphens and spaces are stripped before parsing."""
        assert Isbn("978-0-306 40615-7").as_text() == "9780306406157"

    def test_bad_checksum_is_invalid(self) -> None:
        """A wrong check digit makes the code invalid."""
        assert not Isbn("9780306406158").is_valid(strict=False)

    def test_x_in_the_middle_is_invalid(self) -> None:
        """An X anywhere but the tenth position is rejected."""
        assert Isbn("03064X6152").type == IsbnType.INVALID

    def test_empty_and_none_are_invalid(self) -> None:
        """Empty input never validates."""
        assert not Isbn("").is_valid(strict=False)
        assert not Isbn(None).is_valid(strict=False)

    def test_invalid_keeps_input_text(self) -> None:
        """An invalid code still reports the text it was given."""
        assert Isbn("not an isbn").as_text() == "not an isbn"


class TestStrictness:
    """Tests for strict (ISBN only) vs loose (any barcode) parsing."""

    def test_generic_ean13_only_valid_when_loose(self) -> None:
        """A non-book EAN-13 is a barcode, not an ISBN."""
        assert not Isbn("4006381333931", strict=True).is_valid(strict=True)
        loose = Isbn.create("4006381333931")
        assert loose.type == IsbnType.EAN13
        assert loose.is_valid(strict=False)
        assert not loose.is_valid(strict=True)

    def test_upc_with_known_prefix_becomes_isbn10(self) -> None:
        """A paperback UPC with a mapped publisher prefix converts to its ISBN-10."""
        isbn = Isbn("07099900000812345")
        assert isbn.type == IsbnType.ISBN10
        assert isbn.as_text() == "034512345X"


class TestConversion:
    """Tests for ISBN-10 / ISBN-13 conversion."""

    def test_isbn13_to_isbn10(self) -> None:
        """A 978 ISBN-13 converts to the matching ISBN-10."""
        assert Isbn("9780306406157").as_text(IsbnType.ISBN10) == "0306406152"

    def test_isbn10_to_isbn13(self) -> None:
        """An ISBN-10 converts to its 978 ISBN-13."""
        assert Isbn("0306406152").as_text(IsbnType.ISBN13) == "9780306406157"

    def test_979_is_not_isbn10_compatible(self) -> None:
        """979-prefixed ISBN-13s have no ISBN-10 form."""
        isbn = Isbn("9791034305094")
        assert isbn.is_valid()
        assert not isbn.is_isbn10_compat()
        with pytest.raises(ValueError, match="Unable to convert"):
            isbn.as_text(IsbnType.ISBN10)

    def test_invalid_cannot_convert(self) -> None:
        """Converting an invalid code raises ValueError."""
        with pytest.raises(ValueError):
            Isbn("12345").as_text(IsbnType.ISBN13)


class TestEquality:
    """Tests for equality across the 10 and 13 digit forms."""

    def test_isbn10_equals_isbn13(self) -> None:
        """Both forms of the same book are equal and hash alike."""
        a = Isbn("0306406152")
        b = Isbn("9780306406157")
        assert a == b
        assert hash(a) == hash(b)

    def test_different_books_differ(self) -> None:
        """Different ISBNs are not equal."""
        assert Isbn("0306406152") != Isbn("080442957X")

    def test_invalid_never_equal(self) -> None:
        """Invalid codes are not equal even to themselves' text."""
        assert Isbn("garbage") != Isbn("garbage")

    def test_matches_helper(self) -> None:
        """matches() compares two strings as ISBNs."""
        assert Isbn.matches("9780306406157", "0-306-40615-2")
        assert not Isbn.matches("9780306406157", None)
        assert not Isbn.matches("9780306406157", "garbage")

    def test_is_valid_isbn(self) -> None:
        """is_valid_isbn() is a strict check."""
        assert is_valid_isbn("9780306406157")
        assert not is_valid_isbn("4006381333931")
        assert not is_valid_isbn("")
