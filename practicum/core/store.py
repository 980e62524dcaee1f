from abc import ABC, abstractmethod
from typing import Dict, Optional


class KeyValueStore(ABC):
    """읽음 상태 저장소 인터페이스 (get/set)"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    async def close(self) -> None:
        return None


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        """값 조회"""
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """값 저장"""
        self._data[key] = value

    def keys(self):
        return list(self._data.keys())
