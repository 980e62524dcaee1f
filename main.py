from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from dotenv import load_dotenv
import logging
from contextlib import asynccontextmanager

# .env 파일 로드 (settings import 이전)
load_dotenv()

from practicum.routers import review_router, notification_router
from practicum.dependencies import init_app, shutdown_services

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 시 실행되는 이벤트 핸들러"""
    try:
        await init_app(app)
        logger.info("Application startup completed")
        yield
    finally:
        await shutdown_services()
        logger.info("Application shutdown")

# FastAPI 앱 설정
app = FastAPI(
    title="Practicum Review API",
    description="Submission review workflow and unread notification tracking",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 개발 환경에서는 모든 origin 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 초기화 함수 정의
def init_routers(app: FastAPI):
    """라우터 초기화"""
    app.include_router(review_router, prefix="/api")
    app.include_router(notification_router, prefix="/api")

init_routers(app)

# 헬스체크 엔드포인트
@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["practicum"]
    )
