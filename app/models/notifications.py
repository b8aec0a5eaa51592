"""Database models for delivery notifications."""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey,
    Index
)
from sqlalchemy.orm import relationship

from app.database import Base


class DeliveryNotificationType(str, Enum):
    """Types of delivery notifications."""
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    DELIVERY_CONFIRMATION = "delivery_confirmation"


class DeliveryNotification(Base):
    """
    Delivery notification - written when an order ships or is delivered.

    Email senders pick up rows with email_sent = false and flip the flag;
    nothing else is ever updated.
    """
    __tablename__ = "delivery_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Recipient (customer) when known
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    notification_type = Column(String(30), nullable=False, comment="shipped, delivered, delivery_confirmation")
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    # Status
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True))

    # Email sink
    email_sent = Column(Boolean, default=False, nullable=False)
    email_sent_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="notifications")
    user = relationship("User")

    __table_args__ = (
        Index('ix_delivery_notifications_created', 'created_at'),
    )
