"""Pydantic schemas for delivery notifications."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import Field

from app.schemas.base import CamelSchema


class AdminDeliveryNotification(CamelSchema):
    id: int
    order_id: int
    order_number: str
    customer_name: str
    notification_type: str
    title: str
    message: str
    created_at: datetime
    is_read: bool


class AdminDeliveryNotificationList(CamelSchema):
    success: bool = True
    unread_count: int
    notifications: List[AdminDeliveryNotification]


class CustomerDeliveryNotification(CamelSchema):
    id: int
    order_id: int
    order_number: str
    notification_type: str
    title: str
    message: str
    created_at: datetime
    is_read: bool
    order_status: str
    total_amount: Decimal
    shipped_at: Optional[datetime] = None


class CustomerDeliveryNotificationList(CamelSchema):
    success: bool = True
    unread_count: int
    notifications: List[CustomerDeliveryNotification]


class NotificationMarkRead(CamelSchema):
    """Body for marking notifications as read."""
    notification_ids: List[int] = Field(..., description="Notification IDs to mark as read")


class NotificationMarkReadResponse(CamelSchema):
    success: bool = True
    message: str
    updated: int
