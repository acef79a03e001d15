# ABOUTME: Shared pytest fixtures for bookhunt tests.
# ABOUTME: Provides coordinator factories over fake providers and temporary preference databases.

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from bookhunt.search.coordinator import SearchCoordinator, SearchSettings
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import MemorySitePreferences, SiteRegistry
from tests.fixtures.providers import FakeProvider


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def prefs_path(tmp_path: Path) -> Path:
    """Path for a throwaway site preferences database."""
    return tmp_path / "prefs" / "sites.db"


@pytest.fixture
def make_coordinator() -> Iterator[Callable[..., SearchCoordinator]]:
    """Build coordinators over fake providers; shuts their worker pools down afterwards."""
    created: list[SearchCoordinator] = []

    def factory(
        *providers: FakeProvider,
        settings: SearchSettings | None = None,
        **kwargs,
    ) -> SearchCoordinator:
        registry = ProviderRegistry(provider.engine() for provider in providers)
        sites = SiteRegistry(registry, MemorySitePreferences())
        coordinator = SearchCoordinator(registry, sites, settings=settings, **kwargs)
        created.append(coordinator)
        return coordinator

    yield factory

    for coordinator in created:
        coordinator.cancel()
        coordinator.close()
