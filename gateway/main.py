"""
gateway/main.py
---------------
API Gateway 서비스 진입점.
각 서비스의 FastAPI router를 통합해서 전체 API 엔드포인트로 제공한다.
- CORS, 공통 예외처리, 로깅 등 공통 설정도 이곳에서 적용
"""
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from common.config import get_settings
from common.logger import get_logger
from services.order.main import lifespan, register_exception_handlers
from services.order.routers.api_router import router as order_router

logger = get_logger("gateway")
logger.info("API Gateway 초기화 시작...")

try:
    settings = get_settings()
    logger.info("설정 로드 완료")
except Exception as e:
    logger.error(f"설정 로드 실패: {e}")
    raise

logger.info(f"FastAPI 애플리케이션 생성: 제목={settings.app_name}, 디버그={settings.debug}")

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3001"],  # 관리자 프론트엔드 도메인
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록 (각 서비스별 router를 include)
logger.debug("주문 라우터 포함 중...")
app.include_router(order_router)
logger.info("주문 라우터 포함 완료")

register_exception_handlers(app)

@app.get("/")
def root():
    """헬스 체크"""
    return {"message": f"{settings.app_name} is running!"}

if __name__ == "__main__":
    uvicorn.run("gateway.main:app", host="0.0.0.0", port=9000, reload=settings.debug)
