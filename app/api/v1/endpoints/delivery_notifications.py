"""Delivery notification inboxes for back-office staff and customers."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import select, func, update

from app.api.deps import DB, BackOfficeUser, CurrentUser
from app.models.notifications import DeliveryNotification
from app.models.order import Order
from app.models.user import User
from app.schemas.notifications import (
    AdminDeliveryNotification,
    AdminDeliveryNotificationList,
    CustomerDeliveryNotification,
    CustomerDeliveryNotificationList,
    NotificationMarkRead,
    NotificationMarkReadResponse,
)

logger = logging.getLogger(__name__)

admin_router = APIRouter()
customer_router = APIRouter()

INBOX_LIMIT = 50


# ==================== Admin Inbox ====================

@admin_router.get("", response_model=AdminDeliveryNotificationList)
async def list_delivery_notifications(db: DB, current_user: BackOfficeUser):
    """Latest delivery notifications across all orders."""
    result = await db.execute(
        select(
            DeliveryNotification,
            Order.order_number,
            Order.customer_email,
            User.first_name,
            User.last_name,
        )
        .join(Order, DeliveryNotification.order_id == Order.id)
        .outerjoin(User, DeliveryNotification.user_id == User.id)
        .order_by(DeliveryNotification.created_at.desc(), DeliveryNotification.id.desc())
        .limit(INBOX_LIMIT)
    )

    notifications = []
    for notification, order_number, customer_email, first_name, last_name in result.all():
        full_name = " ".join(p for p in (first_name, last_name) if p)
        notifications.append(
            AdminDeliveryNotification(
                id=notification.id,
                order_id=notification.order_id,
                order_number=order_number,
                customer_name=full_name or customer_email or "Unknown Customer",
                notification_type=notification.notification_type,
                title=notification.title,
                message=notification.message,
                created_at=notification.created_at,
                is_read=bool(notification.is_read),
            )
        )

    unread_result = await db.execute(
        select(func.count(DeliveryNotification.id))
        .where(DeliveryNotification.is_read == False)  # noqa: E712
    )
    unread_count = unread_result.scalar() or 0

    logger.info(f"Found {unread_count} unread delivery notifications, {len(notifications)} total")

    return AdminDeliveryNotificationList(unread_count=unread_count, notifications=notifications)


@admin_router.patch("", response_model=NotificationMarkReadResponse)
async def mark_delivery_notifications_read(
    data: NotificationMarkRead,
    db: DB,
    current_user: BackOfficeUser,
):
    """Mark delivery notifications as read."""
    updated = 0
    if data.notification_ids:
        result = await db.execute(
            update(DeliveryNotification)
            .where(DeliveryNotification.id.in_(data.notification_ids))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0

    return NotificationMarkReadResponse(
        message=f"Marked {len(data.notification_ids)} notifications as read",
        updated=updated,
    )


# ==================== Customer Inbox ====================

@customer_router.get("", response_model=CustomerDeliveryNotificationList)
async def list_my_delivery_notifications(db: DB, current_user: CurrentUser):
    """Delivery notifications for the caller's orders."""
    result = await db.execute(
        select(
            DeliveryNotification,
            Order.order_number,
            Order.status,
            Order.total_amount,
            Order.shipped_at,
        )
        .join(Order, DeliveryNotification.order_id == Order.id)
        .where(Order.user_id == current_user.id)
        .order_by(DeliveryNotification.created_at.desc(), DeliveryNotification.id.desc())
        .limit(INBOX_LIMIT)
    )

    notifications = [
        CustomerDeliveryNotification(
            id=notification.id,
            order_id=notification.order_id,
            order_number=order_number,
            notification_type=notification.notification_type,
            title=notification.title,
            message=notification.message,
            created_at=notification.created_at,
            is_read=bool(notification.is_read),
            order_status=order_status,
            total_amount=total_amount,
            shipped_at=shipped_at,
        )
        for notification, order_number, order_status, total_amount, shipped_at in result.all()
    ]

    unread_result = await db.execute(
        select(func.count(DeliveryNotification.id))
        .join(Order, DeliveryNotification.order_id == Order.id)
        .where(Order.user_id == current_user.id)
        .where(DeliveryNotification.is_read == False)  # noqa: E712
    )
    unread_count = unread_result.scalar() or 0

    return CustomerDeliveryNotificationList(unread_count=unread_count, notifications=notifications)


@customer_router.patch("", response_model=NotificationMarkReadResponse)
async def mark_my_delivery_notifications_read(
    data: NotificationMarkRead,
    db: DB,
    current_user: CurrentUser,
):
    """Mark read only notifications that belong to the caller's orders."""
    updated = 0
    if data.notification_ids:
        own_orders = select(Order.id).where(Order.user_id == current_user.id)
        result = await db.execute(
            update(DeliveryNotification)
            .where(DeliveryNotification.id.in_(data.notification_ids))
            .where(DeliveryNotification.order_id.in_(own_orders))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0

    return NotificationMarkReadResponse(
        message="Notifications marked as read",
        updated=updated,
    )
