# ABOUTME: Core data structures shared by the search engine: field keys, merge kinds, criteria, events.
# ABOUTME: Raw provider results and the merged record are plain dicts keyed by BookField names.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BookField:
    """Well-known keys used in raw provider results and in the merged record.

    Providers may add keys outside this set (site-specific ids, prices in
    odd currencies, ...). Unknown keys merge with the scalar rule.
    """

    ISBN = "isbn"
    TITLE = "title"
    DESCRIPTION = "description"
    LANGUAGE = "language"
    PAGES = "pages"
    FORMAT = "format"
    COLOR = "color"
    PRICE = "price"
    GENRE = "genre"
    PUBLICATION_DATE = "publication_date"
    FIRST_PUBLICATION_DATE = "first_publication_date"
    AUTHORS = "authors"
    SERIES = "series"
    PUBLISHERS = "publishers"
    TOC = "toc"
    # Per cover slot (0 = front, 1 = back): candidate files, then the chosen one.
    COVER_CANDIDATES = ("cover_candidates_0", "cover_candidates_1")
    COVER_FILE = ("cover_file_0", "cover_file_1")


class FieldKind(Enum):
    """How values for a key are folded together during the merge."""

    SCALAR = "scalar"
    LIST = "list"
    DATE = "date"


FIELD_KINDS: dict[str, FieldKind] = {
    BookField.AUTHORS: FieldKind.LIST,
    BookField.SERIES: FieldKind.LIST,
    BookField.PUBLISHERS: FieldKind.LIST,
    BookField.TOC: FieldKind.LIST,
    BookField.COVER_CANDIDATES[0]: FieldKind.LIST,
    BookField.COVER_CANDIDATES[1]: FieldKind.LIST,
    BookField.PUBLICATION_DATE: FieldKind.DATE,
    BookField.FIRST_PUBLICATION_DATE: FieldKind.DATE,
}


def field_kind(key: str) -> FieldKind:
    """Return the merge kind for a key; anything not listed is a scalar."""
    return FIELD_KINDS.get(key, FieldKind.SCALAR)


@dataclass(frozen=True)
class Author:
    name: str
    role: str | None = None


@dataclass(frozen=True)
class Series:
    title: str
    number: str | None = None


@dataclass(frozen=True)
class Publisher:
    name: str


@dataclass(frozen=True)
class TocEntry:
    title: str
    author: Author | None = None
    first_publication_date: str | None = None


# A field value is text (scalars and dates), a list of cover file paths,
# a list of structured entries, or None for "provider had nothing".
FieldValue = str | list[str] | list[Author] | list[Series] | list[Publisher] | list[TocEntry] | None

RawResult = dict[str, Any]


@dataclass
class SearchCriteria:
    """What the user asked for. Mutable until a search session starts."""

    isbn: str = ""
    strict_isbn: bool = True
    author: str = ""
    title: str = ""
    publisher: str = ""
    external_ids: dict[int, str] = field(default_factory=dict)
    fetch_covers: tuple[bool, bool] = (False, False)

    def has_anchor_criteria(self) -> bool:
        """At least one of ISBN, external id, author or title is present.

        Publisher alone is never enough to identify a book.
        """
        return bool(
            self.isbn.strip()
            or self.author.strip()
            or self.title.strip()
            or any(value for value in self.external_ids.values())
        )


@dataclass(frozen=True)
class TaskProgress:
    """Progress reported by a single search task."""

    task_id: int
    text: str
    position: int = 0
    max_position: int = 0


@dataclass(frozen=True)
class SearchProgress:
    """Combined progress across all running tasks of a session."""

    text: str
    position: int
    max_position: int


@dataclass
class SearchResult:
    """Terminal event payload: the merged record plus any provider errors."""

    record: dict[str, Any]
    error_summary: str | None = None
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.error_summary)
