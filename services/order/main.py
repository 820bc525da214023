"""
order 서비스 단독 실행용 (비동기 엔진 기반)
- 결제 통지 → 카드 발급, 관리자 환불 처리
"""
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.config import get_settings
from common.database.postgres_shop import SessionLocal, engine
from common.errors import ShopException
from common.logger import get_logger
from services.order.crud.card_schema_crud import resolve_reservation_support
from services.order.routers.api_router import router as order_api_router
from services.order.utils.view_cache_manager import view_cache_manager

logger = get_logger("order_service")

def register_exception_handlers(app: FastAPI) -> None:
    """서비스 공통 에러를 {kind, detail} 형태로 응답"""

    @app.exception_handler(ShopException)
    async def handle_shop_exception(request: Request, exc: ShopException):
        logger.warning(f"요청 실패: {request.method} {request.url.path}, kind={exc.kind}, detail={exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"kind": exc.kind, "detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def catch_all_exceptions(request: Request, exc: Exception):
        logger.error("=== [Global Exception] ===")
        logger.error(f"Exception: {repr(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        return JSONResponse(
            status_code=500,
            content={"kind": "internal", "detail": "Internal Server Error"},
        )

async def detect_card_schema() -> None:
    """시작 시 카드 예약 컬럼 지원 여부를 1회 판별"""
    async with SessionLocal() as session:
        supported = await resolve_reservation_support(session)
    logger.info(f"카드 예약 지원 여부: {supported}")

async def shutdown_resources() -> None:
    await view_cache_manager.close()
    await engine.dispose()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """시작 시 카드 스키마 판별, 종료 시 Redis/DB 연결 정리"""
    await detect_card_schema()
    try:
        yield
    finally:
        await shutdown_resources()

def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=f"{settings.app_name} - Order", debug=settings.debug, lifespan=lifespan)
    app.include_router(order_api_router)
    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Incoming request: {request.method} {request.url}")
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code}")
        return response

    return app

app = create_app()
