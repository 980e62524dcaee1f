import logging
from typing import Optional

from fastapi import FastAPI

from practicum.core.cache import QueryCache
from practicum.core.config import Settings, settings
from practicum.core.events import InvalidationBus
from practicum.core.store import KeyValueStore, MemoryKeyValueStore
from practicum.services.backend.api_client import BackendClient
from practicum.services.notification.center import NotificationCenter
from practicum.services.notification.registry import CenterRegistry
from practicum.services.review.review_service import ReviewService
from practicum.utils.redis_store import RedisKeyValueStore

logger = logging.getLogger(__name__)

class Services:
    def __init__(self):
        self.bus: Optional[InvalidationBus] = None
        self.backend: Optional[BackendClient] = None
        self.store: Optional[KeyValueStore] = None
        self.review_service: Optional[ReviewService] = None
        self.centers: Optional[CenterRegistry] = None

services = Services()

def build_store(config: Settings) -> KeyValueStore:
    """READ_STATE_BACKEND 설정에 따른 읽음 상태 저장소"""
    if config.READ_STATE_BACKEND == "redis":
        return RedisKeyValueStore(url=config.REDIS_URL)
    return MemoryKeyValueStore()

async def init_services(config: Settings = settings):
    """서비스 초기화"""
    try:
        logger.info("Initializing backend client...")
        services.bus = InvalidationBus()
        services.backend = BackendClient(config)
        services.store = build_store(config)
        logger.info(f"Read state backend: {config.READ_STATE_BACKEND}")

        services.review_service = ReviewService(
            services.backend,
            services.bus,
            config,
            cache=QueryCache(services.bus),
        )
        services.centers = CenterRegistry(
            services.backend,
            services.store,
            services.bus,
            limit=config.NOTIFICATION_CENTER_LIMIT,
        )
        logger.info("ReviewService initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing services: {e}")
        raise

async def shutdown_services():
    if services.centers is not None:
        services.centers.close()
        services.centers = None
    if services.store is not None:
        await services.store.close()

async def get_review_service() -> ReviewService:
    if services.review_service is None:
        raise RuntimeError("Services not initialized")
    return services.review_service

async def get_notification_center(viewer_id: str, role: str = "student") -> NotificationCenter:
    """viewer 별 NotificationCenter (최초 요청 시 생성)"""
    if services.centers is None:
        raise RuntimeError("Services not initialized")
    return await services.centers.get(viewer_id, role)

async def init_app(app: FastAPI):
    """앱 초기화"""
    try:
        await init_services()
        logger.info("Services initialized successfully")
    except Exception as e:
        logger.error(f"Service initialization failed: {str(e)}")
        raise
