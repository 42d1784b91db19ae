from contextlib import asynccontextmanager
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.database import close_mongo_connection_async, db_manager
from .core.dependencies import get_subscription_registry, reset_dependencies
from .core.logging_config import new_request_id, set_request_id, setup_logging
from .domains.broadcasts.router import router as broadcasts_router
from .domains.subscriptions.router import router as subscriptions_router
from .shared.exceptions import (
    BaseAPIException,
    base_api_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .shared.models.base import utcnow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리"""
    setup_logging()
    logger.info("애플리케이션 시작 중...")

    if not settings.push_configured:
        logger.warning("VAPID key pair missing: push delivery disabled until configured")
    if not settings.content_webhook_secret:
        logger.warning("content_webhook_secret missing: change signals will be rejected")

    try:
        await get_subscription_registry()
        logger.info("구독 레지스트리 준비 완료 (backend=%s)", settings.registry_backend)
    except Exception as e:
        # 레지스트리는 첫 요청 시 재시도됨
        logger.error(f"구독 레지스트리 초기화 실패: {e}")

    logger.info("애플리케이션 시작 완료")

    yield

    logger.info("애플리케이션 종료 중...")
    try:
        await close_mongo_connection_async()
    except Exception as e:
        logger.error(f"MongoDB 연결 종료 중 오류: {e}")
    reset_dependencies()
    logger.info("애플리케이션 종료 완료")


app = FastAPI(
    title="Community Push Service",
    description="""
    콘텐츠 변경을 구독 기기로 전달하는 Web Push 서비스.

    - **구독 레지스트리**: 브라우저 푸시 구독 등록/해제 (endpoint 기준 upsert)
    - **콘텐츠 변경 webhook**: 공유 시크릿 인증 후 전체 구독자에게 fan-out
    - **만료 구독 정리**: 푸시 서비스가 404/410 으로 응답한 endpoint 자동 삭제
    """,
    version=settings.api_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or new_request_id()
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers["X-Request-ID"] = request_id
    return response


# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# 예외 핸들러 등록 (구체적인 예외부터)
app.add_exception_handler(BaseAPIException, base_api_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# 라우터 등록
app.include_router(subscriptions_router, prefix="/api/v1")
app.include_router(broadcasts_router, prefix="/api/v1")


@app.get("/", tags=["기본"], summary="API 정보 조회")
def root():
    return {
        "service": "Community Push Service",
        "version": settings.api_version,
        "status": "running",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "api_v1": "/api/v1"
        }
    }


@app.get("/health", tags=["기본"], summary="서비스 상태 확인")
async def health_check():
    """헬스 체크 - 레지스트리 연결 및 푸시 설정 상태"""
    if settings.registry_backend == "memory":
        registry_status = "memory"
    elif await db_manager.async_is_healthy():
        registry_status = "connected"
    else:
        registry_status = "disconnected"

    healthy = registry_status != "disconnected"
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "registry": registry_status,
        "push_configured": settings.push_configured,
        "version": settings.api_version
    }


if __name__ == "__main__":
    uvicorn.run(
        "community_push.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
