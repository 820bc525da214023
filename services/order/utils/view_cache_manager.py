"""
주문/환불 화면 캐시 무효화 유틸리티
- Redis에 저장된 화면(view) 캐시 키를 삭제
- 캐시 무효화는 부가 작업이므로 실패해도 예외를 전파하지 않음
"""

from typing import Iterable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from common.config import get_settings
from common.logger import get_logger

logger = get_logger("view_cache")

VIEW_ADMIN_ORDERS = "admin:orders"
VIEW_ADMIN_REFUNDS = "admin:refunds"

def order_detail_view(order_id: str) -> str:
    return f"order:{order_id}"

def refund_affected_views(order_id: str) -> list:
    """환불 처리 후 갱신이 필요한 화면 목록"""
    return [VIEW_ADMIN_ORDERS, VIEW_ADMIN_REFUNDS, order_detail_view(order_id)]

class ViewCacheManager:
    """화면 캐시 관리자"""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url
        self.redis_client: Optional[redis.Redis] = None

    async def get_redis_client(self) -> Optional[redis.Redis]:
        """Redis 클라이언트 가져오기 (지연 초기화)"""
        if self.redis_client is None:
            try:
                client = redis.from_url(self.redis_url or get_settings().redis_url, decode_responses=True)
                # 연결 테스트
                await client.ping()
                self.redis_client = client
                logger.info("Redis 연결 성공")
            except (RedisError, OSError) as e:
                logger.error(f"Redis 연결 실패: {e}")
                # Redis 연결 실패 시 None 반환하여 캐시 비활성화
                return None
        return self.redis_client

    @staticmethod
    def _cache_key(view_id: str) -> str:
        return f"view:{view_id}"

    async def invalidate_views(self, view_ids: Iterable[str]) -> int:
        """
        화면 캐시 무효화 (view:<id> 및 view:<id>:* 키 삭제)

        Returns:
            int: 삭제된 키 수 (Redis 미연결/실패 시 0)
        """
        view_ids = list(view_ids)
        try:
            redis_client = await self.get_redis_client()
            if not redis_client:
                return 0

            keys = []
            for view_id in view_ids:
                key = self._cache_key(view_id)
                keys.append(key)
                keys.extend(await redis_client.keys(f"{key}:*"))

            deleted_count = await redis_client.delete(*keys) if keys else 0
            logger.info(f"화면 캐시 무효화: views={view_ids}, 삭제된 키 수={deleted_count}")
            return deleted_count

        except (RedisError, OSError) as e:
            logger.error(f"화면 캐시 무효화 실패: views={view_ids}, error={e}")
            return 0

    async def close(self):
        """Redis 연결 종료"""
        if self.redis_client:
            await self.redis_client.close()
            self.redis_client = None
            logger.info("Redis 연결 종료")

# 전역 캐시 매니저 인스턴스
view_cache_manager = ViewCacheManager()
