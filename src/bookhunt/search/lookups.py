# ABOUTME: One-off lookups driven by the non-Data site lists: covers, alternate editions, site URLs.
# ABOUTME: Run synchronously on the caller's thread; provider failures are logged and skipped.

import logging
import threading
from pathlib import Path

from bookhunt.search.errors import SearchError
from bookhunt.search.isbn import Isbn
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import ListType, SiteRegistry

logger = logging.getLogger(__name__)


class LookupContext:
    """A SearchContext for lookups that run outside a search session."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def publish_progress(self, text: str, position: int = 0, max_position: int = 0) -> None:
        logger.debug("%s (%d/%d)", text, position, max_position)


def find_cover(
    engines: ProviderRegistry,
    sites: SiteRegistry,
    isbn: str,
    slot: int = 0,
    context: LookupContext | None = None,
) -> Path | None:
    """Ask each enabled Covers site in turn; return the first cover file found."""
    context = context or LookupContext()
    if not Isbn(isbn, strict=True).is_valid():
        logger.debug("Not looking up a cover for invalid isbn %r", isbn)
        return None

    for site in sites.enabled_sites(ListType.COVERS):
        if context.is_cancelled():
            break
        engine = engines.get(site.provider_id)
        try:
            found = engine.search_best_cover_by_isbn(context, isbn, slot)
        except SearchError as exc:
            logger.warning("%s cover lookup failed: %s", engine.name, exc)
            continue
        if found:
            return Path(found[0])
    return None


def find_alternative_editions(
    engines: ProviderRegistry,
    sites: SiteRegistry,
    isbn: str,
    context: LookupContext | None = None,
) -> list[str]:
    """Collect other ISBNs for the same work from every enabled AltEditions site.

    The result keeps first-seen order and contains no duplicates.
    """
    context = context or LookupContext()
    editions: list[str] = []
    for site in sites.enabled_sites(ListType.ALT_EDITIONS):
        if context.is_cancelled():
            break
        engine = engines.get(site.provider_id)
        if engine.alternative_editions is None:
            continue
        try:
            found = engine.alternative_editions(context, isbn)
        except SearchError as exc:
            logger.warning("%s edition lookup failed: %s", engine.name, exc)
            continue
        for edition in found:
            if edition and edition not in editions:
                editions.append(edition)
    return editions


def view_urls(
    engines: ProviderRegistry,
    sites: SiteRegistry,
    external_ids: dict[int, str],
) -> list[tuple[str, str]]:
    """(site name, url) for every enabled ViewOnSite site we hold an id for."""
    urls = []
    for site in sites.enabled_sites(ListType.VIEW_ON_SITE):
        external_id = external_ids.get(site.provider_id)
        if not external_id:
            continue
        engine = engines.get(site.provider_id)
        if engine.view_url is None:
            continue
        urls.append((engine.name, engine.view_url(external_id)))
    return urls
