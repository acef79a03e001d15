# ABOUTME: ISBN/EAN/UPC value object used to decide search strategy and to filter merge order.
# ABOUTME: Handles checksum validation, strict vs loose validity, and ISBN-10/13 conversion.

import re
from enum import Enum

# Manufacturer prefixes of UPC-A barcodes printed on US mass-market paperbacks,
# mapped to the ISBN publisher prefix they stand for.
_UPC_TO_ISBN_PREFIX = {
    "014794": "08041",
    "018926": "0445",
    "027778": "0449",
    "037145": "0812",
    "042799": "0785",
    "043144": "0688",
    "044903": "0312",
    "045863": "0517",
    "046594": "0064",
    "047132": "0152",
    "051487": "08167",
    "051488": "0140",
    "060771": "0002",
    "065373": "0373",
    "070992": "0523",
    "070993": "0446",
    "070999": "0345",
    "071001": "0380",
    "071009": "0440",
    "071125": "088677",
    "071136": "0451",
    "071149": "0451",
    "071152": "0515",
    "071162": "0451",
    "071268": "08217",
    "071831": "0425",
    "071842": "08439",
    "072742": "0441",
    "076714": "0671",
    "076783": "0553",
    "076814": "0449",
    "078021": "0872",
    "079808": "0394",
    "090129": "0679",
    "099455": "0061",
    "099769": "0451",
}

_SEPARATOR_RE = re.compile(r"[ -]")

# Digit value used for a trailing 'X' in an ISBN-10.
_X = 10


class IsbnType(Enum):
    INVALID = "invalid"
    ISBN10 = "isbn10"
    ISBN13 = "isbn13"
    EAN13 = "ean13"
    UPC_A = "upc_a"


def _isbn10_checksum(digits: list[int]) -> int:
    if len(digits) not in (9, 10):
        raise ValueError(f"Wrong size: {len(digits)}")
    total = sum(digit * weight for digit, weight in zip(digits[:9], range(10, 1, -1)))
    modulo = total % 11
    return 0 if modulo == 0 else 11 - modulo


def _ean13_checksum(digits: list[int]) -> int:
    if len(digits) not in (12, 13):
        raise ValueError(f"Wrong size: {len(digits)}")
    total = sum(d if i % 2 == 0 else d * 3 for i, d in enumerate(digits[:12]))
    modulo = total % 10
    return 0 if modulo == 0 else 10 - modulo


def _upca_checksum(digits: list[int]) -> int:
    if len(digits) not in (11, 12):
        raise ValueError(f"Wrong size: {len(digits)}")
    total = sum(d * 3 if i % 2 == 0 else d for i, d in enumerate(digits[:11]))
    modulo = total % 10
    return 0 if modulo == 0 else 10 - modulo


def _to_digits(text: str) -> list[int]:
    """Collect leading digits; 'X' is only accepted as the tenth character.

    Stops at the first character that is neither, so trailing junk such as
    a price suffix on a barcode scan is ignored.
    """
    digits: list[int] = []
    found_x = False
    for char in text:
        if char.isdigit():
            if found_x:
                raise ValueError("X can only be at the end of an ISBN-10")
            digits.append(int(char))
        elif char in "Xx" and len(digits) == 9:
            if found_x:
                raise ValueError("X can only be at the end of an ISBN-10")
            digits.append(_X)
            found_x = True
        else:
            break
    return digits


def _detect_type(digits: list[int]) -> IsbnType:
    size = len(digits)
    if size == 10:
        if _isbn10_checksum(digits) == digits[-1]:
            return IsbnType.ISBN10
    elif size == 13:
        if _ean13_checksum(digits) == digits[-1]:
            if digits[0] == 9 and digits[1] == 7 and digits[2] in (8, 9):
                return IsbnType.ISBN13
            return IsbnType.EAN13
    elif size > 11:
        if _upca_checksum(digits[:12]) == digits[11]:
            return IsbnType.UPC_A
    return IsbnType.INVALID


def _concat(digits: list[int]) -> str:
    return "".join("X" if d == _X else str(d) for d in digits)


def _core_digits(digits: list[int]) -> tuple[int, ...]:
    """The nine digits an ISBN-10 and its ISBN-13 form have in common."""
    if len(digits) == 10:
        return tuple(digits[:9])
    return tuple(digits[3:12])


class Isbn:
    """A parsed ISBN-10, ISBN-13, EAN-13 or UPC-A code.

    In strict mode only ISBN-10 and ISBN-13 are accepted; any other code is
    downgraded to INVALID. In loose mode generic barcodes are kept, which
    lets barcode-capable providers search by them.
    """

    def __init__(self, text: str | None, strict: bool = True) -> None:
        digits: list[int] | None = None
        code_type = IsbnType.INVALID

        clean = _SEPARATOR_RE.sub("", text or "")
        if clean:
            try:
                digits = _to_digits(clean)
                code_type = _detect_type(digits)
                if code_type == IsbnType.UPC_A:
                    prefix = _UPC_TO_ISBN_PREFIX.get(clean[:6])
                    if prefix is not None:
                        digits = _to_digits(prefix + clean[12:])
                        digits.append(_isbn10_checksum(digits))
                        code_type = IsbnType.ISBN10
            except ValueError:
                code_type = IsbnType.INVALID

            if strict and code_type not in (IsbnType.ISBN10, IsbnType.ISBN13):
                code_type = IsbnType.INVALID

        if code_type == IsbnType.INVALID or digits is None:
            self._type = IsbnType.INVALID
            self._digits: list[int] | None = None
            self._text = text or ""
        else:
            self._type = code_type
            self._digits = digits
            self._text = _concat(digits)

    @classmethod
    def create(cls, text: str) -> "Isbn":
        """Parse leniently: generic EAN-13 and UPC-A codes are valid too."""
        return cls(text, strict=False)

    @staticmethod
    def matches(first: str | None, second: str | None, strict: bool = True) -> bool:
        """True if both strings are valid codes referring to the same book."""
        if first is None or second is None:
            return False
        a = Isbn(first, strict)
        if not a.is_valid(strict):
            return False
        b = Isbn(second, strict)
        if not b.is_valid(strict):
            return False
        return a == b

    @property
    def type(self) -> IsbnType:
        return self._type

    def is_valid(self, strict: bool = True) -> bool:
        if strict:
            return self._type in (IsbnType.ISBN10, IsbnType.ISBN13)
        return self._type != IsbnType.INVALID

    def is_isbn10_compat(self) -> bool:
        """ISBN-10 itself, or an ISBN-13 in the 978 range."""
        return self._type == IsbnType.ISBN10 or (
            self._type == IsbnType.ISBN13 and self._text.startswith("978")
        )

    def as_text(self, target: IsbnType | None = None) -> str:
        """Return the code as text, optionally converted to another type.

        Raises:
            ValueError: If the code cannot be expressed as the target type.
        """
        if target is None or target == IsbnType.INVALID or target == self._type:
            return self._text
        if self._digits is None:
            raise ValueError(f"Unable to convert type: {self._type.value} to {target.value}")

        if target == IsbnType.ISBN13 and self._type == IsbnType.ISBN10:
            digits = [9, 7, 8, *self._digits[:9]]
            digits.append(_ean13_checksum(digits))
            return _concat(digits)

        if target == IsbnType.ISBN10 and self.is_isbn10_compat():
            digits = self._digits[3:12]
            digits.append(_isbn10_checksum(digits))
            return _concat(digits)

        raise ValueError(f"Unable to convert type: {self._type.value} to {target.value}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Isbn):
            return NotImplemented
        if self._digits is None or other._digits is None:
            return False
        if len(self._digits) == len(other._digits):
            return self._digits == other._digits
        if {len(self._digits), len(other._digits)} == {10, 13}:
            if not (self.is_isbn10_compat() and other.is_isbn10_compat()):
                return False
            return _core_digits(self._digits) == _core_digits(other._digits)
        return False

    def __hash__(self) -> int:
        if self._digits is None:
            return hash((self._type, self._text))
        if len(self._digits) in (10, 13):
            return hash(_core_digits(self._digits))
        return hash(tuple(self._digits))

    def __repr__(self) -> str:
        return f"Isbn(type={self._type.value}, text={self._text!r})"

    def __str__(self) -> str:
        return self._text


def is_valid_isbn(text: str | None) -> bool:
    """Strict check: text is a valid ISBN-10 or ISBN-13."""
    if not text:
        return False
    return Isbn(text, strict=True).is_valid(strict=True)
