from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.notifications import DeliveryNotification
from app.models.order import OrderStatusHistory
from app.services.auto_delivery_service import (
    AutoDeliveryService,
    EligibleOrder,
    TransitionOutcome,
    days_between,
    eligibility_cutoff,
)
from tests.utils import (
    NOW,
    count_rows,
    days_ago,
    get_order,
    history_for,
    notifications_for,
)


@pytest.fixture
def service(session_factory, settings):
    return AutoDeliveryService(session_factory, settings)


# ==================== Eligibility Selector ====================

async def test_order_shipped_exactly_thirty_days_ago_is_eligible(service, make_order):
    order = await make_order("ORD-30", shipped_at=days_ago(30))

    eligible = await service.find_eligible_orders(NOW)

    assert [o.id for o in eligible] == [order.id]
    assert eligible[0].days_since_shipped == 30


async def test_order_shipped_twenty_nine_days_ago_is_not_eligible(service, make_order):
    await make_order("ORD-29", shipped_at=days_ago(29))

    assert await service.find_eligible_orders(NOW) == []


async def test_day_count_uses_calendar_days(service, make_order):
    # 29 days 23 hours before noon falls on the calendar day 30 days back
    order = await make_order("ORD-CAL", shipped_at=NOW - timedelta(days=29, hours=23))

    eligible = await service.find_eligible_orders(NOW)

    assert [o.id for o in eligible] == [order.id]
    assert eligible[0].days_since_shipped == 30


@pytest.mark.parametrize("refund_status", ["pending", "approved"])
async def test_open_refund_request_blocks_auto_delivery(service, make_order, refund_status):
    await make_order("ORD-REFUND", shipped_at=days_ago(40), refund_status=refund_status)

    assert await service.find_eligible_orders(NOW) == []


@pytest.mark.parametrize("refund_status", ["rejected", "completed"])
async def test_closed_refund_request_does_not_block(service, make_order, refund_status):
    order = await make_order("ORD-CLOSED", shipped_at=days_ago(40), refund_status=refund_status)

    eligible = await service.find_eligible_orders(NOW)

    assert [o.id for o in eligible] == [order.id]


async def test_selector_skips_orders_not_awaiting_delivery(service, make_order):
    await make_order("ORD-PROC", status="processing", shipped_at=days_ago(40))
    await make_order("ORD-CANC", status="cancelled", shipped_at=days_ago(40))
    await make_order("ORD-NOSHIP", status="shipped", shipped_at=None)
    await make_order("ORD-DELIV", status="shipped", shipped_at=days_ago(40), delivered_at=days_ago(5))

    assert await service.find_eligible_orders(NOW) == []
    assert await service.count_eligible_orders(NOW) == 0


async def test_selector_returns_oldest_shipment_first(service, make_order):
    recent = await make_order("ORD-A", shipped_at=days_ago(31))
    oldest = await make_order("ORD-B", shipped_at=days_ago(60))
    middle = await make_order("ORD-C", shipped_at=days_ago(45))

    eligible = await service.find_eligible_orders(NOW)

    assert [o.id for o in eligible] == [oldest.id, middle.id, recent.id]
    assert [o.days_since_shipped for o in eligible] == [60, 45, 31]


async def test_batch_size_caps_selection_but_not_count(session_factory, settings, make_order):
    settings.AUTO_DELIVERY_BATCH_SIZE = 2
    service = AutoDeliveryService(session_factory, settings)
    for days in (31, 32, 33):
        await make_order(f"ORD-{days}", shipped_at=days_ago(days))

    eligible = await service.find_eligible_orders(NOW)

    assert [o.order_number for o in eligible] == ["ORD-33", "ORD-32"]
    assert await service.count_eligible_orders(NOW) == 3


async def test_selector_has_no_side_effects(service, make_order, session_factory):
    order = await make_order("ORD-RO", shipped_at=days_ago(35))

    await service.find_eligible_orders(NOW)
    await service.preview(NOW)

    assert (await get_order(session_factory, order.id)).status == "shipped"
    assert await count_rows(session_factory, OrderStatusHistory) == 0


def test_eligibility_cutoff_is_start_of_first_ineligible_day():
    cutoff = eligibility_cutoff(NOW, 30)

    assert cutoff.isoformat() == "2026-09-20T00:00:00+00:00"
    assert days_between(NOW, cutoff) == 29


# ==================== Order Transition Processor ====================

async def test_deliver_order_transitions_and_records_audit(service, make_order, make_user, session_factory):
    customer = await make_user("jane@example.com")
    order = await make_order("ORD-500", shipped_at=days_ago(33), user=customer)
    [eligible] = await service.find_eligible_orders(NOW)

    outcome = await service.deliver_order(eligible, NOW)

    assert outcome == TransitionOutcome.DELIVERED
    stored = await get_order(session_factory, order.id)
    assert stored.status == "delivered"
    assert stored.delivered_at is not None

    [notification] = await notifications_for(session_factory, order.id)
    assert notification.user_id == customer.id
    assert notification.notification_type == "delivery_confirmation"
    assert notification.title == "Order Automatically Confirmed as Delivered"
    assert "ORD-500" in notification.message
    assert "after 33 days" in notification.message
    assert notification.is_read is False

    [history] = await history_for(session_factory, order.id)
    assert history.old_status == "shipped"
    assert history.new_status == "delivered"
    assert history.actor_type == "system"
    assert history.changed_by == "system"
    assert history.change_reason == "Auto-delivery after 33 days"


async def test_guest_order_gets_audit_row_but_no_notification(service, make_order, session_factory):
    order = await make_order("ORD-GUEST", shipped_at=days_ago(31))
    [eligible] = await service.find_eligible_orders(NOW)

    await service.deliver_order(eligible, NOW)

    assert await notifications_for(session_factory, order.id) == []
    assert len(await history_for(session_factory, order.id)) == 1


async def test_delivering_same_order_twice_is_a_no_op(service, make_order, make_user, session_factory):
    customer = await make_user("twice@example.com")
    order = await make_order("ORD-TWICE", shipped_at=days_ago(31), user=customer)
    [eligible] = await service.find_eligible_orders(NOW)

    first = await service.deliver_order(eligible, NOW)
    delivered_at = (await get_order(session_factory, order.id)).delivered_at
    second = await service.deliver_order(eligible, NOW + timedelta(hours=1))

    assert first == TransitionOutcome.DELIVERED
    assert second == TransitionOutcome.ALREADY_DELIVERED
    assert (await get_order(session_factory, order.id)).delivered_at == delivered_at
    assert len(await notifications_for(session_factory, order.id)) == 1
    assert len(await history_for(session_factory, order.id)) == 1


async def test_notification_failure_rolls_back_status_update(
    service, make_order, make_user, session_factory, monkeypatch
):
    customer = await make_user("fault@example.com")
    order = await make_order("ORD-FAULT", shipped_at=days_ago(31), user=customer)
    [eligible] = await service.find_eligible_orders(NOW)

    def broken_notification(order, now):
        # title is NOT NULL; the insert fails after the status update ran
        return DeliveryNotification(
            user_id=order.user_id,
            order_id=order.id,
            notification_type="delivery_confirmation",
            title=None,
            message="broken",
        )

    monkeypatch.setattr(service, "build_delivery_notification", broken_notification)

    with pytest.raises(IntegrityError):
        await service.deliver_order(eligible, NOW)

    stored = await get_order(session_factory, order.id)
    assert stored.status == "shipped"
    assert stored.delivered_at is None
    assert await history_for(session_factory, order.id) == []
    assert await notifications_for(session_factory, order.id) == []


# ==================== Batch Orchestrator ====================

async def test_run_with_nothing_eligible(service):
    result = await service.run(NOW)

    assert result.success is True
    assert result.total_eligible == 0
    assert result.processed == 0
    assert result.errors == 0
    assert result.results == []


async def test_run_isolates_failing_order(service, make_order, session_factory, monkeypatch):
    first = await make_order("ORD-1", shipped_at=days_ago(50))
    second = await make_order("ORD-2", shipped_at=days_ago(40))
    third = await make_order("ORD-3", shipped_at=days_ago(35))

    original = AutoDeliveryService.deliver_order

    async def flaky_deliver(self, order, now=None):
        if order.order_number == "ORD-2":
            raise RuntimeError("simulated update failure")
        return await original(self, order, now)

    monkeypatch.setattr(AutoDeliveryService, "deliver_order", flaky_deliver)

    result = await service.run(NOW)

    assert result.total_eligible == 3
    assert result.processed == 2
    assert result.errors == 1
    assert [r.status for r in result.results] == ["success", "error", "success"]
    assert result.results[1].error == "simulated update failure"

    assert (await get_order(session_factory, first.id)).status == "delivered"
    assert (await get_order(session_factory, second.id)).status == "shipped"
    assert (await get_order(session_factory, third.id)).status == "delivered"


async def test_run_end_to_end(service, make_order, make_user, session_factory, monkeypatch):
    customer = await make_user("e2e@example.com")
    await make_order("ORD-101", shipped_at=days_ago(31), user=customer, order_id=101)
    await make_order("ORD-102", shipped_at=days_ago(45), user=customer, order_id=102)

    async def selector(now=None):
        return [
            EligibleOrder(101, "ORD-101", "shipped", days_ago(31), "e2e@example.com", customer.id, 31),
            EligibleOrder(102, "ORD-102", "shipped", days_ago(45), "e2e@example.com", customer.id, 45),
        ]

    monkeypatch.setattr(service, "find_eligible_orders", selector)

    result = await service.run(NOW)

    assert result.success is True
    assert result.total_eligible == 2
    assert result.processed == 2
    assert result.errors == 0
    assert [(r.order_id, r.status) for r in result.results] == [(101, "success"), (102, "success")]
    assert [r.days_since_shipped for r in result.results] == [31, 45]
    assert await count_rows(session_factory, OrderStatusHistory) == 2


async def test_run_treats_order_delivered_by_concurrent_run_as_success(
    service, make_order, make_user, session_factory, monkeypatch
):
    customer = await make_user("race@example.com")
    order = await make_order("ORD-RACE", shipped_at=days_ago(31), user=customer)
    stale = await service.find_eligible_orders(NOW)

    # Another run wins the race before this one gets to the order
    await service.deliver_order(stale[0], NOW)

    async def stale_selector(now=None):
        return stale

    monkeypatch.setattr(service, "find_eligible_orders", stale_selector)

    result = await service.run(NOW)

    assert result.processed == 1
    assert result.skipped == 1
    assert result.errors == 0
    assert result.results[0].status == "success"
    assert result.results[0].already_delivered is True
    assert len(await notifications_for(session_factory, order.id)) == 1
    assert len(await history_for(session_factory, order.id)) == 1


async def test_selector_failure_is_fatal(service, monkeypatch):
    async def unreachable(now=None):
        raise ConnectionError("database unreachable")

    monkeypatch.setattr(service, "find_eligible_orders", unreachable)

    with pytest.raises(ConnectionError):
        await service.run(NOW)


async def test_preview_reports_count_and_orders(service, make_order):
    await make_order("ORD-P1", shipped_at=days_ago(31))
    await make_order("ORD-P2", shipped_at=days_ago(90))
    await make_order("ORD-P3", shipped_at=days_ago(3))

    preview = await service.preview(NOW)

    assert preview["count"] == 2
    assert [o.order_number for o in preview["orders"]] == ["ORD-P2", "ORD-P1"]
