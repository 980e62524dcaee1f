import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from practicum.core.events import InvalidationBus

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Tuple[Tuple[str, Any], ...]]


def make_key(collection: str, filters: Optional[Dict[str, Any]] = None) -> CacheKey:
    """필터 값이 None 인 항목은 키에서 제외"""
    items = tuple(sorted((k, v) for k, v in (filters or {}).items() if v is not None))
    return (collection, items)


class QueryCache:
    """Read results keyed by (collection, filter params).

    Each collection carries a generation counter. A fetch that started before an
    invalidation of its collection does not store its result, so a slow stale
    response can never overwrite what a newer fetch produced.
    """

    def __init__(self, bus: Optional[InvalidationBus] = None):
        self._entries: Dict[CacheKey, Any] = {}
        self._generations: Dict[str, int] = {}
        if bus is not None:
            bus.subscribe(None, self._on_invalidate)

    async def _on_invalidate(self, collection: str, entity_id: Optional[str]) -> None:
        self.invalidate(collection)

    def generation(self, collection: str) -> int:
        return self._generations.get(collection, 0)

    def invalidate(self, collection: str) -> None:
        self._generations[collection] = self.generation(collection) + 1
        for key in [k for k in self._entries if k[0] == collection]:
            del self._entries[key]

    def peek(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> Any:
        return self._entries.get(make_key(collection, filters))

    async def get_or_fetch(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]],
        fetcher: Callable[[], Awaitable[Any]],
    ) -> Any:
        key = make_key(collection, filters)
        if key in self._entries:
            return self._entries[key]

        started_at = self.generation(collection)
        result = await fetcher()
        if self.generation(collection) == started_at:
            self._entries[key] = result
        else:
            logger.debug(f"Dropping stale result for {key}")
        return result
