import asyncio
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from practicum.core.exceptions import PersistenceError
from practicum.schemas.notification import NotifiableItem, NotificationView, ReadState, StreamType
from practicum.services.notification.read_state import ReadStateRepository
from practicum.utils.time import ensure_aware, utcnow

logger = logging.getLogger(__name__)


class NotificationTracker:
    """Unread tracking for one (viewer, stream) key.

    An item is unread when its id is not in ``read_ids`` and it was created after
    ``last_checked_at`` (or nothing was checked yet). Items without a timestamp
    count as new. All read-modify-write cycles run under one lock so concurrent
    ``mark_as_read`` calls never drop each other's ids, and a viewer switch waits
    for in-flight writes of the previous viewer.
    """

    def __init__(self, repository: ReadStateRepository, stream: StreamType):
        self.repository = repository
        self.stream = stream
        self._viewer_id: Optional[str] = None
        self._read_ids: Dict[str, None] = {}
        self._last_checked_at: Optional[datetime] = None
        self._items: List[NotifiableItem] = []
        self._lock = asyncio.Lock()
        self.persist_error: Optional[PersistenceError] = None

    @property
    def viewer_id(self) -> Optional[str]:
        return self._viewer_id

    @property
    def read_ids(self) -> FrozenSet[str]:
        return frozenset(self._read_ids)

    @property
    def last_checked_at(self) -> Optional[datetime]:
        return self._last_checked_at

    @property
    def items(self) -> List[NotifiableItem]:
        return list(self._items)

    async def switch_viewer(self, viewer_id: Optional[str]) -> None:
        async with self._lock:
            self._viewer_id = viewer_id
            self._read_ids = {}
            self._last_checked_at = None
            self._items = []
            self.persist_error = None
            if not viewer_id:
                return
            state = await self.repository.load(viewer_id, self.stream)
            self._read_ids = dict.fromkeys(state.read_ids)
            self._last_checked_at = ensure_aware(state.last_checked_at)

    def set_items(self, items: Iterable[NotifiableItem]) -> None:
        self._items = list(items)

    def is_unread(self, item: NotifiableItem) -> bool:
        if item.id in self._read_ids:
            return False
        if self._last_checked_at is None or item.created_at is None:
            return True
        return ensure_aware(item.created_at) > self._last_checked_at

    def compute_unread(self, items: Optional[Iterable[NotifiableItem]] = None) -> List[NotifiableItem]:
        source = self._items if items is None else items
        return [item for item in source if self.is_unread(item)]

    def views(self, items: Optional[Iterable[NotifiableItem]] = None) -> List[NotificationView]:
        source = self._items if items is None else items
        return [NotificationView(item=item, unread=self.is_unread(item)) for item in source]

    async def mark_as_read(self, item_id: str) -> bool:
        """Returns False when the id was already read (nothing written)."""
        async with self._lock:
            if not self._viewer_id or item_id in self._read_ids:
                return False
            self._read_ids[item_id] = None
            await self._persist()
            return True

    async def mark_all_as_read(self, items: Optional[Iterable[NotifiableItem]] = None) -> None:
        async with self._lock:
            if not self._viewer_id:
                return
            source = self._items if items is None else list(items)
            for item in source:
                self._read_ids.setdefault(item.id, None)
            self._last_checked_at = utcnow()
            await self._persist()

    async def _persist(self) -> None:
        state = ReadState(read_ids=list(self._read_ids), last_checked_at=self._last_checked_at)
        try:
            await self.repository.save(self._viewer_id, self.stream, state)
            self.persist_error = None
        except PersistenceError as e:
            # 메모리 상태는 유지, 새로고침 후 지속성만 잃음
            logger.warning(f"{self.stream.value} read state for {self._viewer_id} not persisted: {e.message}")
            self.persist_error = e
