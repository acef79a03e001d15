# ABOUTME: Post-merge field mappers that normalize free-text values to canonical ones.
# ABOUTME: Each mapper owns one field, is idempotent, and returns a new record.

import re
from typing import Any, Protocol

from bookhunt.search.types import BookField


class FieldMapper(Protocol):
    """Pure transform applied to the merged record after all providers are folded."""

    @property
    def key(self) -> str: ...

    def map(self, record: dict[str, Any]) -> dict[str, Any]: ...


def _normalize(text: str) -> str:
    return re.sub(r"[\s_-]+", " ", text.strip().lower())


class _LookupMapper:
    """Replaces the value of one key when it matches a known spelling.

    Values that are already canonical, or not recognized, are left alone.
    """

    key: str = ""
    mappings: dict[str, str] = {}

    def map(self, record: dict[str, Any]) -> dict[str, Any]:
        value = record.get(self.key)
        if not isinstance(value, str) or not value.strip():
            return record
        canonical = self.mappings.get(_normalize(value))
        if canonical is None or canonical == value:
            return record
        mapped = dict(record)
        mapped[self.key] = canonical
        return mapped


class FormatMapper(_LookupMapper):
    """Maps provider format names ("pb", "Mass Market Paperback") to canonical formats."""

    key = BookField.FORMAT
    mappings = {
        "pb": "Paperback",
        "paperback": "Paperback",
        "softcover": "Paperback",
        "soft cover": "Paperback",
        "trade paperback": "Trade Paperback",
        "tp": "Trade Paperback",
        "tpb": "Trade Paperback",
        "mass market paperback": "Mass Market Paperback",
        "mass market": "Mass Market Paperback",
        "mmpb": "Mass Market Paperback",
        "hc": "Hardcover",
        "hb": "Hardcover",
        "hardcover": "Hardcover",
        "hardback": "Hardcover",
        "hard cover": "Hardcover",
        "gebonden": "Hardcover",
        "ebook": "eBook",
        "e book": "eBook",
        "kindle edition": "eBook",
        "audiobook": "Audiobook",
        "audio cd": "Audiobook",
        "audible audiobook": "Audiobook",
        "board book": "Board Book",
    }


class ColorMapper(_LookupMapper):
    """Maps color descriptions of comics and illustrated books to canonical values."""

    key = BookField.COLOR
    mappings = {
        "color": "Color",
        "colour": "Color",
        "full color": "Color",
        "full colour": "Color",
        "kleur": "Color",
        "in kleur": "Color",
        "black and white": "Black & White",
        "black & white": "Black & White",
        "b&w": "Black & White",
        "b/w": "Black & White",
        "bw": "Black & White",
        "zwart wit": "Black & White",
        "zwart/wit": "Black & White",
        "duotone": "Duotone",
        "two color": "Duotone",
    }
