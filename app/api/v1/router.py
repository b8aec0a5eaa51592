from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Order auto-delivery
    auto_delivery,
    # Delivery notifications
    delivery_notifications,
    # Orders
    orders,
)


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    auto_delivery.router,
    prefix="/admin/auto-delivery",
    tags=["Auto-Delivery"]
)
api_router.include_router(
    delivery_notifications.admin_router,
    prefix="/admin/delivery-notifications",
    tags=["Delivery Notifications"]
)
api_router.include_router(
    delivery_notifications.customer_router,
    prefix="/customer/delivery-notifications",
    tags=["Delivery Notifications"]
)
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)
