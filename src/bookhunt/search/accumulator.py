# ABOUTME: Deterministic merge of per-provider raw results into one canonical record.
# ABOUTME: Applies the scalar / list / date rule per field, in reliability order.

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from bookhunt.search.dates import parse_date, to_iso_date
from bookhunt.search.isbn import Isbn
from bookhunt.search.mappers import FieldMapper
from bookhunt.search.types import BookField, FieldKind, RawResult, field_kind

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


class ResultsAccumulator:
    """Folds raw provider results into one record.

    merge() is a pure function of its arguments: the same results and the
    same provider order always give the same record, whatever order the
    results arrived in.
    """

    def __init__(self, mappers: Iterable[FieldMapper] = ()) -> None:
        self._mappers = list(mappers)

    @staticmethod
    def merge_order(
        reliability_order: Sequence[int],
        results: Mapping[int, RawResult | None],
        isbn: Isbn,
    ) -> list[int]:
        """Decide which providers contribute, and in which order.

        With a valid ISBN, providers whose result carries a matching ISBN
        come first, providers without an ISBN follow, and providers that
        returned a different ISBN are dropped. Without a valid ISBN the
        reliability order is used as-is.
        """
        if not isbn.is_valid(strict=True):
            return list(reliability_order)

        matching: list[int] = []
        without_isbn: list[int] = []
        for provider_id in reliability_order:
            data = results.get(provider_id)
            if not data:
                continue
            isbn_found = data.get(BookField.ISBN)
            if _is_empty(isbn_found):
                without_isbn.append(provider_id)
            elif Isbn.create(str(isbn_found)) == isbn:
                matching.append(provider_id)
            else:
                logger.debug(
                    "Dropping provider %d from merge: isbn %s does not match %s",
                    provider_id,
                    isbn_found,
                    isbn,
                )
        return matching + without_isbn

    def merge(
        self,
        reliability_order: Sequence[int],
        results: Mapping[int, RawResult | None],
        *,
        isbn: Isbn | None = None,
        isbn_text: str = "",
        title_text: str = "",
    ) -> dict[str, Any]:
        """Merge raw results into a new record.

        Args:
            reliability_order: Provider ids, most reliable first.
            results: Raw result per provider id; None or {} means "no data".
            isbn: The session ISBN; when valid it filters the merge order.
            isbn_text: The ISBN text searched for; seeded and used as fallback.
            title_text: The title searched for; used as fallback.

        Returns:
            The merged record. The inputs are not modified.
        """
        session_isbn = isbn if isbn is not None else Isbn(isbn_text, strict=True)
        record: dict[str, Any] = {}

        order = self.merge_order(reliability_order, results, session_isbn)
        if session_isbn.is_valid(strict=True):
            # Seed first; scalar-first-wins keeps providers from overwriting it.
            record[BookField.ISBN] = isbn_text

        for provider_id in order:
            data = results.get(provider_id)
            if not data:
                continue
            for key, value in data.items():
                kind = field_kind(key)
                if kind == FieldKind.DATE:
                    self._fold_date(record, key, value)
                elif kind == FieldKind.LIST:
                    self._fold_list(record, key, value)
                else:
                    self._fold_scalar(record, key, value)

        for mapper in self._mappers:
            record = mapper.map(record)

        if _is_empty(record.get(BookField.ISBN)):
            record[BookField.ISBN] = isbn_text
        if _is_empty(record.get(BookField.TITLE)):
            record[BookField.TITLE] = title_text
        return record

    @staticmethod
    def _fold_scalar(record: dict[str, Any], key: str, value: Any) -> None:
        if _is_empty(value):
            return
        if _is_empty(record.get(key)):
            record[key] = value
        else:
            logger.debug("merge|scalar|skipping|key=%s", key)

    @staticmethod
    def _fold_list(record: dict[str, Any], key: str, value: Any) -> None:
        if _is_empty(value):
            return
        if not isinstance(value, (list, tuple)):
            logger.debug("merge|list|skipping non-list %s|key=%s", type(value).__name__, key)
            return
        current = record.get(key)
        if _is_empty(current):
            record[key] = list(value)
        else:
            record[key] = [*current, *value]

    @staticmethod
    def _fold_date(record: dict[str, Any], key: str, value: Any) -> None:
        if _is_empty(value):
            return
        current = record.get(key)
        if _is_empty(current):
            # Copied even if invalid; a later provider may still replace it.
            record[key] = value
            return
        incoming = parse_date(str(value))
        if incoming is not None and parse_date(str(current)) is None:
            record[key] = to_iso_date(incoming)
            logger.debug("merge|date|replaced invalid %r with %r|key=%s", current, value, key)
