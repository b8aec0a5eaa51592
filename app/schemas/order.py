"""Pydantic schemas for order delivery and audit endpoints."""
from datetime import datetime
from typing import Optional, List

from app.schemas.base import CamelSchema


class OrderDeliveredResponse(CamelSchema):
    message: str
    order_id: int
    order_number: str
    status: str
    delivered_at: datetime


class OrderStatusHistoryResponse(CamelSchema):
    id: int
    order_id: int
    old_status: Optional[str] = None
    new_status: str
    actor_type: str
    changed_by: str
    change_reason: Optional[str] = None
    created_at: datetime


class OrderStatusHistoryList(CamelSchema):
    order_id: int
    order_number: str
    items: List[OrderStatusHistoryResponse]
