from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache
from pathlib import Path

# 기본 디렉토리 설정
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    BASE_DIR: Path = BASE_DIR
    UPLOAD_DIR: Path = BASE_DIR / "uploads"

    # 백엔드 API 설정
    BACKEND_API_URL: str = "http://localhost:4000/api"
    BACKEND_TIMEOUT_SECONDS: float = 10.0
    BACKEND_AUTH_TOKEN: Optional[str] = None

    # 디버그 설정
    DEBUG: bool = True

    # 읽음 상태 저장소 설정 (memory | redis)
    READ_STATE_BACKEND: str = "memory"

    # Redis 설정
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_PREFIX: str = "practicum:"

    # 목록 조회 설정
    NOTIFICATION_PAGE_LIMIT: int = 20
    NOTIFICATION_CENTER_LIMIT: int = 256
    REVIEW_LIST_LIMIT: int = 1000

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
