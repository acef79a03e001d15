# ABOUTME: Registry of available search engines, keyed by their persistent provider id.
# ABOUTME: Passed explicitly to the site registry and coordinator instead of a global singleton.

from collections.abc import Iterable, Iterator

from bookhunt.search.engine import ProviderDescriptor, SearchEngine


class ProviderRegistry:
    """Holds one SearchEngine per provider id, in registration order."""

    def __init__(self, engines: Iterable[SearchEngine] = ()) -> None:
        self._engines: dict[int, SearchEngine] = {}
        for engine in engines:
            self.add(engine)

    def add(self, engine: SearchEngine) -> "ProviderRegistry":
        """Register an engine. Returns self so calls can be chained.

        Raises:
            ValueError: If another engine already uses the same id or key.
        """
        if engine.id in self._engines:
            raise ValueError(f"Duplicate provider id {engine.id} ({engine.name})")
        if any(e.descriptor.key == engine.descriptor.key for e in self._engines.values()):
            raise ValueError(f"Duplicate provider key {engine.descriptor.key!r}")
        self._engines[engine.id] = engine
        return self

    def get(self, provider_id: int) -> SearchEngine:
        try:
            return self._engines[provider_id]
        except KeyError:
            raise KeyError(f"No provider registered with id {provider_id}") from None

    def find(self, key_or_id: str) -> SearchEngine | None:
        """Look up an engine by preference key, or by numeric id given as text."""
        for engine in self._engines.values():
            if engine.descriptor.key == key_or_id:
                return engine
        if key_or_id.isdigit():
            return self._engines.get(int(key_or_id))
        return None

    def descriptors(self) -> list[ProviderDescriptor]:
        return [engine.descriptor for engine in self._engines.values()]

    def reliability_order(self) -> str:
        """Comma-separated provider ids, most reliable first."""
        ranked = sorted(self._engines.values(), key=lambda e: e.descriptor.reliability_rank)
        return ",".join(str(engine.id) for engine in ranked)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._engines

    def __iter__(self) -> Iterator[SearchEngine]:
        return iter(self._engines.values())

    def __len__(self) -> int:
        return len(self._engines)
