import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from practicum.core.config import settings
from practicum.core.exceptions import PersistenceError
from practicum.core.store import KeyValueStore
from practicum.schemas.notification import ReadState, StreamType

logger = logging.getLogger(__name__)


def storage_key(viewer_id: str, stream: StreamType, prefix: Optional[str] = None) -> str:
    """viewer 와 stream 을 모두 포함하는 저장 키"""
    prefix = settings.REDIS_PREFIX if prefix is None else prefix
    return f"{prefix}read_state:{stream.value}:{viewer_id}"


class ReadStateRepository:
    """Persists one ``{readIds, lastCheckedAt}`` record per (viewer, stream)."""

    def __init__(self, store: KeyValueStore, prefix: Optional[str] = None):
        self.store = store
        self.prefix = prefix

    async def load(self, viewer_id: str, stream: StreamType) -> ReadState:
        key = storage_key(viewer_id, stream, self.prefix)
        try:
            raw = await self.store.get(key)
        except PersistenceError as e:
            logger.warning(f"읽음 상태 조회 실패 ({key}): {e.message}")
            return ReadState()
        if not raw:
            return ReadState()
        try:
            return ReadState.model_validate_json(raw)
        except SchemaError as e:
            logger.warning(f"손상된 읽음 상태 무시 ({key}): {e}")
            return ReadState()

    async def save(self, viewer_id: str, stream: StreamType, state: ReadState) -> None:
        key = storage_key(viewer_id, stream, self.prefix)
        try:
            await self.store.set(key, state.model_dump_json(by_alias=True))
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to persist {key}: {e}")
