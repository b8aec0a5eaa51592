import logging

from fastapi import APIRouter, HTTPException, Request, status

from app.api.deps import DB, BackOfficeUser, CurrentUser
from app.schemas.order import (
    OrderDeliveredResponse,
    OrderStatusHistoryList,
    OrderStatusHistoryResponse,
)
from app.services.auto_delivery_service import as_utc
from app.services.order_service import (
    ClientInfo,
    OrderAlreadyDeliveredError,
    OrderNotEligibleError,
    OrderService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = (
        forwarded.split(",")[0].strip() if forwarded
        else request.headers.get("x-real-ip")
    )
    return ClientInfo(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


@router.patch("/{order_id}/delivered", response_model=OrderDeliveredResponse)
async def confirm_order_delivered(
    order_id: int,
    request: Request,
    db: DB,
    current_user: CurrentUser,
):
    """
    Customer confirms a shipped order arrived.
    Only the order's owner can confirm, and only while it is shipped.
    """
    service = OrderService(db)

    try:
        order = await service.confirm_delivery(order_id, current_user, client=_client_info(request))
    except OrderNotEligibleError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except OrderAlreadyDeliveredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return OrderDeliveredResponse(
        message="Order marked as delivered successfully.",
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        delivered_at=as_utc(order.delivered_at),
    )


@router.get("/{order_id}/status-history", response_model=OrderStatusHistoryList)
async def get_order_status_history(
    order_id: int,
    db: DB,
    current_user: BackOfficeUser,
):
    """Audit trail of status transitions, oldest first."""
    service = OrderService(db)

    order = await service.get_order_by_id(order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    history = await service.get_status_history(order_id)
    return OrderStatusHistoryList(
        order_id=order.id,
        order_number=order.order_number,
        items=[OrderStatusHistoryResponse.model_validate(h) for h in history],
    )
