"""Order API router entrypoint."""

from fastapi import APIRouter

from services.order.routers.payment.notify_router import router as payment_notify_router
from services.order.routers.refund.admin_refund_router import router as admin_refund_router

router = APIRouter()

router.include_router(payment_notify_router, prefix="/api/orders/payment", tags=["Orders/Payment"])
router.include_router(admin_refund_router, prefix="/api/admin/refunds", tags=["Admin/Refunds"])
