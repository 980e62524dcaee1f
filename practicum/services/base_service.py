import logging
from typing import Optional

from practicum.core.config import Settings, settings as default_settings
from practicum.core.events import InvalidationBus
from practicum.services.backend.api_client import BackendClient

logger = logging.getLogger(__name__)

class BaseService:
    def __init__(
        self,
        backend: Optional[BackendClient] = None,
        bus: Optional[InvalidationBus] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.backend = backend or BackendClient(self.settings)
        self.bus = bus or InvalidationBus()

    async def _invalidate(self, collection: str, entity_id: Optional[str] = None) -> None:
        logger.debug(f"Invalidating {collection} ({entity_id})")
        await self.bus.publish(collection, entity_id)
