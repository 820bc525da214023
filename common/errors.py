# errors.py
"""
공통 에러 타입 정의
- 모든 HTTP 에러는 안정적인 kind 문자열을 가진다 (클라이언트 분기용)
- SchemaIncompatibleError는 내부 분류용이며 호출자에게 전달되지 않는다
"""
from fastapi import HTTPException, status

class ShopException(HTTPException):
    """kind 문자열을 가진 서비스 공통 HTTP 에러"""
    kind = "error"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class NotAuthenticatedException(ShopException):
    """401 에러 - 인증 실패"""
    kind = "not_authenticated"

    def __init__(self, detail: str = "인증이 필요합니다."):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)

class UnauthorizedException(ShopException):
    """403 에러 - 관리자 권한 없음"""
    kind = "unauthorized"

    def __init__(self, detail: str = "관리자 권한이 필요합니다."):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)

class NotFoundException(ShopException):
    """404 에러 - 항목 없음"""
    kind = "not_found"

    def __init__(self, name: str = "데이터"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{name}을(를) 찾을 수 없습니다.")

class OrderNotFoundException(NotFoundException):
    kind = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"주문({order_id})")
        self.order_id = order_id

class ValidationException(ShopException):
    """400 에러 - 요청 값 검증 실패"""
    kind = "validation"

    def __init__(self, detail: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code, detail)

class AmountMismatchException(ValidationException):
    kind = "amount_mismatch"

    def __init__(self, order_amount, paid_amount):
        super().__init__(f"결제 금액 불일치: 주문={order_amount}, 결제={paid_amount}")
        self.order_amount = order_amount
        self.paid_amount = paid_amount

class MissingTradeNoException(ValidationException):
    kind = "missing_trade_no"

    def __init__(self, order_id: str):
        super().__init__(f"주문({order_id})에 결제 거래번호(trade_no)가 없습니다.")

class MissingGatewayConfigException(ValidationException):
    kind = "missing_gateway_config"

    def __init__(self):
        super().__init__("결제 게이트웨이 설정(MERCHANT_ID/MERCHANT_KEY)이 없습니다.",
                         status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

class GatewayTransportException(ShopException):
    """502 에러 - 결제 게이트웨이 통신 실패 (네트워크 오류 또는 non-2xx)"""
    kind = "transport"

    def __init__(self, detail: str, upstream_status: int = None):
        super().__init__(status.HTTP_502_BAD_GATEWAY, detail)
        self.upstream_status = upstream_status

class SchemaIncompatibleError(Exception):
    """예약 컬럼(reserved_order_id/reserved_at)이 없는 스키마 - 내부에서 복구됨"""
