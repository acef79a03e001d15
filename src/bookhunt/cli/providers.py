# ABOUTME: Discovers installed search providers through the bookhunt.providers entry-point group.
# ABOUTME: Each entry point names a callable returning one SearchEngine or an iterable of them.

import logging
from importlib.metadata import entry_points

from bookhunt.search.engine import SearchEngine
from bookhunt.search.registry import ProviderRegistry

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "bookhunt.providers"


def load_registry(group: str = ENTRY_POINT_GROUP) -> ProviderRegistry:
    """Build a registry from every installed provider plugin.

    A plugin that fails to load is logged and left out; the others still load.
    """
    registry = ProviderRegistry()
    for entry_point in entry_points(group=group):
        try:
            factory = entry_point.load()
            created = factory()
        except Exception as exc:  # third-party plugin code
            logger.warning("Could not load provider %s: %r", entry_point.name, exc)
            continue
        engines = [created] if isinstance(created, SearchEngine) else list(created)
        for engine in engines:
            try:
                registry.add(engine)
            except ValueError as exc:
                logger.warning("Skipping provider from %s: %s", entry_point.name, exc)
    return registry
