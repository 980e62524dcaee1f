import asyncio
import logging
from collections import OrderedDict
from typing import Optional, Tuple

from practicum.core.events import InvalidationBus
from practicum.core.store import KeyValueStore
from practicum.services.backend.api_client import BackendClient
from practicum.services.notification.center import NotificationCenter, streams_for_role

logger = logging.getLogger(__name__)

CenterKey = Tuple[str, str]


class CenterRegistry:
    """(viewer, role) 별 NotificationCenter 를 최근 사용 순으로 보관

    At most ``limit`` centers are kept; the least recently used one is closed
    (unsubscribed, pending refreshes cancelled) when a new viewer pushes it out.
    """

    def __init__(
        self,
        backend: BackendClient,
        store: KeyValueStore,
        bus: Optional[InvalidationBus] = None,
        limit: int = 256,
        prefix: Optional[str] = None,
    ):
        self.backend = backend
        self.store = store
        self.bus = bus
        self.limit = limit
        self.prefix = prefix
        self._centers: "OrderedDict[CenterKey, NotificationCenter]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._centers)

    def __contains__(self, key: CenterKey) -> bool:
        return key in self._centers

    async def get(self, viewer_id: str, role: str = "student") -> NotificationCenter:
        key = (viewer_id, role)
        async with self._lock:
            center = self._centers.get(key)
            if center is not None:
                self._centers.move_to_end(key)
                return center

            center = NotificationCenter(
                self.backend,
                self.store,
                self.bus,
                streams=streams_for_role(role),
                prefix=self.prefix,
            )
            await center.set_viewer(viewer_id)
            self._centers[key] = center
            while len(self._centers) > self.limit:
                evicted_key, evicted = self._centers.popitem(last=False)
                evicted.close()
                logger.info(f"Evicted notification center for {evicted_key}")
            return center

    async def drain(self) -> None:
        await asyncio.gather(*(center.drain() for center in list(self._centers.values())))

    def close(self) -> None:
        for center in self._centers.values():
            center.close()
        self._centers.clear()
