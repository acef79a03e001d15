# ABOUTME: Site registry: per use-case ordered lists of providers the user can enable and reorder.
# ABOUTME: Hardcoded defaults are overlaid with persisted enablement flags and order strings.

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol, runtime_checkable

from bookhunt.search.engine import DATA_CAPABILITIES, Capability
from bookhunt.search.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ListType(Enum):
    """Independent use cases, each with its own site list and order."""

    DATA = "data"
    COVERS = "covers"
    ALT_EDITIONS = "alted"
    VIEW_ON_SITE = "view"

    @property
    def capabilities(self) -> frozenset[Capability]:
        """A provider joins this list if it has any of these capabilities."""
        return _LIST_CAPABILITIES[self]


_LIST_CAPABILITIES = {
    ListType.DATA: DATA_CAPABILITIES,
    ListType.COVERS: frozenset({Capability.COVER_BY_ISBN}),
    ListType.ALT_EDITIONS: frozenset({Capability.ALTERNATIVE_EDITIONS}),
    ListType.VIEW_ON_SITE: frozenset({Capability.VIEW_BY_EXTERNAL_ID}),
}


@dataclass
class Site:
    """One provider's participation in one list. Order is its list position."""

    provider_id: int
    list_type: ListType
    enabled: bool = True


@runtime_checkable
class SitePreferences(Protocol):
    """Persistence collaborator for site enablement and order."""

    def get_enabled(self, provider_id: int, list_type: ListType) -> bool | None: ...

    def set_enabled(self, provider_id: int, list_type: ListType, enabled: bool) -> None: ...

    def get_order(self, list_type: ListType) -> str | None: ...

    def set_order(self, list_type: ListType, order: str) -> None: ...


class MemorySitePreferences:
    """In-process preferences; nothing survives the process."""

    def __init__(self) -> None:
        self.enabled: dict[tuple[int, ListType], bool] = {}
        self.orders: dict[ListType, str] = {}

    def get_enabled(self, provider_id: int, list_type: ListType) -> bool | None:
        return self.enabled.get((provider_id, list_type))

    def set_enabled(self, provider_id: int, list_type: ListType, enabled: bool) -> None:
        self.enabled[(provider_id, list_type)] = enabled

    def get_order(self, list_type: ListType) -> str | None:
        return self.orders.get(list_type)

    def set_order(self, list_type: ListType, order: str) -> None:
        self.orders[list_type] = order


def filter_enabled(sites: Iterable[Site]) -> list[Site]:
    return [site for site in sites if site.enabled]


def _parse_order(order: str) -> list[int]:
    ids: list[int] = []
    for token in order.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.append(int(token))
        except ValueError:
            logger.warning("Ignoring malformed site id %r in order %r", token, order)
    return ids


class SiteRegistry:
    """Ordered, user-configurable site lists for every ListType.

    All accessors hand out copies: callers may mutate what they get and
    pass it back through set_sites() to persist the change.
    """

    def __init__(
        self,
        engines: ProviderRegistry,
        preferences: SitePreferences | None = None,
    ) -> None:
        self._engines = engines
        self._prefs = preferences if preferences is not None else MemorySitePreferences()
        self._lists: dict[ListType, list[Site]] = {}
        for list_type in ListType:
            self._lists[list_type] = self._create_list(list_type)
            self._load(list_type)

    @staticmethod
    def reorder(sites: Iterable[Site], order: str) -> list[Site]:
        """Return the sites named in a comma-separated id string, in that order.

        Sites not named are left out of the returned list (they are not
        removed from the registry). Unknown or malformed ids are skipped.
        """
        site_list = list(sites)
        reordered: list[Site] = []
        for provider_id in _parse_order(order):
            for site in site_list:
                if site.provider_id == provider_id and site not in reordered:
                    reordered.append(site)
                    break
        return reordered

    def sites(self, list_type: ListType) -> list[Site]:
        """All sites of a list in user order, disabled ones included."""
        return [replace(site) for site in self._lists[list_type]]

    def enabled_sites(self, list_type: ListType) -> list[Site]:
        return filter_enabled(self.sites(list_type))

    def site(self, list_type: ListType, provider_id: int) -> Site:
        for site in self._lists[list_type]:
            if site.provider_id == provider_id:
                return replace(site)
        raise KeyError(f"Provider {provider_id} is not in the {list_type.value} list")

    def set_sites(self, list_type: ListType, sites: Iterable[Site]) -> None:
        """Replace a list with new order and enablement, and persist it.

        Raises:
            ValueError: If a site belongs to another list or an unknown provider.
        """
        new_list: list[Site] = []
        for site in sites:
            if site.list_type != list_type:
                raise ValueError(f"Site for {site.list_type.value} given for {list_type.value}")
            if site.provider_id not in self._engines:
                raise ValueError(f"Unknown provider id {site.provider_id}")
            new_list.append(replace(site))
        self._lists[list_type] = new_list
        self._save(list_type)

    def set_enabled(self, list_type: ListType, provider_id: int, enabled: bool) -> None:
        sites = self.sites(list_type)
        for site in sites:
            if site.provider_id == provider_id:
                site.enabled = enabled
                break
        else:
            raise KeyError(f"Provider {provider_id} is not in the {list_type.value} list")
        self.set_sites(list_type, sites)

    def reset(self, list_type: ListType) -> None:
        """Restore hardcoded defaults, overwriting stored preferences."""
        self._lists[list_type] = self._create_list(list_type)
        self._save(list_type)

    def data_sites_by_reliability(self) -> list[Site]:
        """Data sites in the fixed reliability order used to resolve merge conflicts."""
        return self.reorder(self.sites(ListType.DATA), self._engines.reliability_order())

    def _create_list(self, list_type: ListType) -> list[Site]:
        sites = []
        for engine in self._engines:
            if not any(engine.supports(cap) for cap in list_type.capabilities):
                continue
            enabled = list_type not in engine.descriptor.disabled_by_default
            sites.append(Site(provider_id=engine.id, list_type=list_type, enabled=enabled))
        return sites

    def _load(self, list_type: ListType) -> None:
        site_list = self._lists[list_type]
        for site in site_list:
            stored = self._prefs.get_enabled(site.provider_id, list_type)
            if stored is not None:
                site.enabled = stored

        order = self._prefs.get_order(list_type)
        if order is None:
            return

        reordered = self.reorder(site_list, order)
        if len(reordered) < len(site_list):
            # Providers added since the order was stored go to the end.
            reordered.extend(site for site in site_list if site not in reordered)
            self._lists[list_type] = reordered
            logger.debug("Site order for %s lacked providers; re-saving", list_type.value)
            self._save(list_type)
        else:
            self._lists[list_type] = reordered

    def _save(self, list_type: ListType) -> None:
        site_list = self._lists[list_type]
        for site in site_list:
            self._prefs.set_enabled(site.provider_id, list_type, site.enabled)
        self._prefs.set_order(list_type, ",".join(str(site.provider_id) for site in site_list))
