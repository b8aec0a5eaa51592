from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.notifications import DeliveryNotification


class OrderStatus(str, Enum):
    """Order lifecycle status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    PENDING_CANCELLATION = "pending_cancellation"


class RefundStatus(str, Enum):
    """Refund request status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


# Refund requests in these states veto automatic delivery
OPEN_REFUND_STATUSES = (RefundStatus.PENDING.value, RefundStatus.APPROVED.value)


class ActorType(str, Enum):
    """Who performed a status transition."""
    SYSTEM = "system"
    USER = "user"


@dataclass(frozen=True)
class Actor:
    """
    Identity recorded against an order status transition.

    Use Actor.system() for scheduler/batch transitions and
    Actor.user(email) when a person caused the change.
    """
    kind: ActorType
    email: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(kind=ActorType.SYSTEM)

    @classmethod
    def user(cls, email: str) -> "Actor":
        if not email:
            raise ValueError("User actor requires an email")
        return cls(kind=ActorType.USER, email=email)

    @property
    def changed_by(self) -> str:
        """Value stored in order_status_history.changed_by."""
        if self.kind == ActorType.SYSTEM:
            return ActorType.SYSTEM.value
        return self.email


class Order(Base):
    """Customer order."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, confirmed, processing, shipped, delivered, cancelled, returned, pending_cancellation"
    )

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    user: Mapped[Optional["User"]] = relationship("User")
    refund_requests: Mapped[List["RefundRequest"]] = relationship(
        "RefundRequest",
        back_populates="order",
        cascade="all, delete-orphan"
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.id"
    )
    notifications: Mapped[List["DeliveryNotification"]] = relationship(
        "DeliveryNotification",
        back_populates="order"
    )

    __table_args__ = (
        Index("ix_orders_status_shipped_at", "status", "shipped_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(order_number='{self.order_number}', status='{self.status}')>"


class RefundRequest(Base):
    """Customer refund claim against an order."""
    __tablename__ = "refund_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=RefundStatus.PENDING.value,
        nullable=False,
        comment="pending, approved, rejected, completed"
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="refund_requests")


class OrderStatusHistory(Base):
    """Append-only order status change history."""
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    old_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)

    actor_type: Mapped[str] = mapped_column(
        String(10),
        default=ActorType.SYSTEM.value,
        nullable=False,
        comment="system, user"
    )
    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    change_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="status_history")


class DeliveryConfirmation(Base):
    """Record of a customer confirming receipt of an order."""
    __tablename__ = "delivery_confirmations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    confirmed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    confirmation_method: Mapped[str] = mapped_column(String(30), default="customer_portal", nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
