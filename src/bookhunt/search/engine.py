# ABOUTME: Provider descriptor and capability-based search engine adapter.
# ABOUTME: An engine holds a capability set plus one callable per capability it supports.

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from bookhunt.search.types import RawResult

if TYPE_CHECKING:
    from bookhunt.search.sites import ListType

logger = logging.getLogger(__name__)


class Capability(Enum):
    BY_EXTERNAL_ID = "by_external_id"
    BY_ISBN = "by_isbn"
    BY_BARCODE = "by_barcode"
    BY_TEXT = "by_text"
    COVER_BY_ISBN = "cover_by_isbn"
    ALTERNATIVE_EDITIONS = "alternative_editions"
    VIEW_BY_EXTERNAL_ID = "view_by_external_id"


DATA_CAPABILITIES = frozenset(
    {
        Capability.BY_EXTERNAL_ID,
        Capability.BY_ISBN,
        Capability.BY_BARCODE,
        Capability.BY_TEXT,
    }
)


class CoverSize(Enum):
    """Size hint passed to cover downloads; providers map it to their own sizes."""

    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"


@runtime_checkable
class SearchContext(Protocol):
    """What a provider callable may use while it runs.

    Cancellation is a request, not a guarantee of prompt termination:
    providers should poll is_cancelled() between network round-trips.
    """

    def is_cancelled(self) -> bool: ...

    def publish_progress(self, text: str, position: int = 0, max_position: int = 0) -> None: ...


@dataclass(frozen=True)
class TextQuery:
    """Free-text criteria handed to a ByText search.

    All fields may be empty; the provider decides whether that is enough.
    """

    code: str = ""
    author: str = ""
    title: str = ""
    publisher: str = ""


FetchCovers = tuple[bool, bool]
ExternalIdSearch = Callable[[SearchContext, str, FetchCovers], RawResult]
IsbnSearch = Callable[[SearchContext, str, FetchCovers], RawResult]
TextSearch = Callable[[SearchContext, TextQuery, FetchCovers], RawResult]
CoverSearch = Callable[[SearchContext, str, int, CoverSize], "Path | str | None"]
EditionsSearch = Callable[[SearchContext, str], list[str]]
ViewUrl = Callable[[str], str]


def _always_available() -> bool:
    return True


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static identity of one external metadata source.

    The id is persisted in user preferences: never reuse or renumber it.
    reliability_rank positions the provider in the fixed default order
    used to resolve merge conflicts (lower is more reliable).
    """

    id: int
    key: str
    name: str
    capabilities: frozenset[Capability]
    reliability_rank: int
    prefer_isbn10: bool = False
    supports_multiple_cover_sizes: bool = False
    disabled_by_default: frozenset["ListType"] = frozenset()
    is_available: Callable[[], bool] = field(default=_always_available, compare=False)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


_CAPABILITY_ATTRS = {
    Capability.BY_EXTERNAL_ID: "by_external_id",
    Capability.BY_ISBN: "by_isbn",
    Capability.BY_BARCODE: "by_barcode",
    Capability.BY_TEXT: "by_text",
    Capability.COVER_BY_ISBN: "cover_by_isbn",
    Capability.ALTERNATIVE_EDITIONS: "alternative_editions",
    Capability.VIEW_BY_EXTERNAL_ID: "view_url",
}


@dataclass
class SearchEngine:
    """Adapter for one provider: its descriptor plus the calls it supports.

    Every capability declared in the descriptor must come with its callable,
    and no callable may be given for an undeclared capability.
    """

    descriptor: ProviderDescriptor
    by_external_id: ExternalIdSearch | None = None
    by_isbn: IsbnSearch | None = None
    by_barcode: IsbnSearch | None = None
    by_text: TextSearch | None = None
    cover_by_isbn: CoverSearch | None = None
    alternative_editions: EditionsSearch | None = None
    view_url: ViewUrl | None = None

    def __post_init__(self) -> None:
        for capability, attr in _CAPABILITY_ATTRS.items():
            declared = self.descriptor.supports(capability)
            present = getattr(self, attr) is not None
            if declared and not present:
                msg = f"{self.name}: capability {capability.value} declared without a callable"
                raise ValueError(msg)
            if present and not declared:
                msg = f"{self.name}: callable {attr} given for undeclared {capability.value}"
                raise ValueError(msg)

    @property
    def id(self) -> int:
        return self.descriptor.id

    @property
    def name(self) -> str:
        return self.descriptor.name

    def supports(self, capability: Capability) -> bool:
        return self.descriptor.supports(capability)

    def is_available(self) -> bool:
        """Cheap local check, e.g. whether credentials are configured."""
        return self.descriptor.is_available()

    def search_best_cover_by_isbn(self, context: SearchContext, isbn: str, slot: int) -> list[str]:
        """Fetch the biggest cover the provider has for an ISBN.

        Tries LARGE first; providers that support several sizes then fall
        back to MEDIUM and SMALL. Returns a list holding zero or one path so
        the result can be added to a cover candidate list as-is.
        """
        if self.cover_by_isbn is None:
            raise ValueError(f"{self.name} does not support cover search")

        sizes = [CoverSize.LARGE]
        if self.descriptor.supports_multiple_cover_sizes:
            sizes += [CoverSize.MEDIUM, CoverSize.SMALL]

        for size in sizes:
            if context.is_cancelled():
                break
            file_spec = self.cover_by_isbn(context, isbn, slot, size)
            if file_spec:
                logger.debug("%s: cover %d found at size %s", self.name, slot, size.value)
                return [str(file_spec)]
        return []
