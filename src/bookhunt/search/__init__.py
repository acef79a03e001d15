# ABOUTME: Multi-provider book metadata search: coordinator, providers, site lists and merge.
# ABOUTME: Exports the types callers need to register providers and run a search.

from bookhunt.search.coordinator import SearchCoordinator, SearchSettings
from bookhunt.search.engine import (
    Capability,
    CoverSize,
    ProviderDescriptor,
    SearchContext,
    SearchEngine,
    TextQuery,
)
from bookhunt.search.errors import (
    CredentialsRequiredError,
    MissingCriteriaError,
    NetworkUnavailableError,
    ProviderSearchError,
    SearchAlreadyRunningError,
    SearchError,
    StorageError,
)
from bookhunt.search.isbn import Isbn, IsbnType, is_valid_isbn
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import ListType, MemorySitePreferences, Site, SiteRegistry
from bookhunt.search.types import BookField, SearchCriteria, SearchProgress, SearchResult

__all__ = [
    "BookField",
    "Capability",
    "CoverSize",
    "CredentialsRequiredError",
    "Isbn",
    "IsbnType",
    "ListType",
    "MemorySitePreferences",
    "MissingCriteriaError",
    "NetworkUnavailableError",
    "ProviderDescriptor",
    "ProviderRegistry",
    "ProviderSearchError",
    "SearchAlreadyRunningError",
    "SearchContext",
    "SearchCoordinator",
    "SearchCriteria",
    "SearchEngine",
    "SearchError",
    "SearchProgress",
    "SearchResult",
    "SearchSettings",
    "Site",
    "SiteRegistry",
    "StorageError",
    "TextQuery",
    "is_valid_isbn",
]
