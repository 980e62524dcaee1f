import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional
import logging

from practicum.core.config import settings
from practicum.core.exceptions import PersistenceError
from practicum.core.store import KeyValueStore

logger = logging.getLogger(__name__)

class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        self.redis = client or redis.from_url(
            url or settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )

    async def get(self, key: str) -> Optional[str]:
        """값 조회"""
        try:
            return await self.redis.get(key)
        except RedisError as e:
            logger.error(f"Redis 조회 중 오류 발생: {str(e)}")
            raise PersistenceError(f"Failed to read {key}: {e}")

    async def set(self, key: str, value: str) -> None:
        """값 저장 (만료 없음)"""
        try:
            await self.redis.set(key, value)
        except RedisError as e:
            logger.error(f"Redis 저장 중 오류 발생: {str(e)}")
            raise PersistenceError(f"Failed to write {key}: {e}")

    async def close(self) -> None:
        """연결 종료"""
        await self.redis.close()
