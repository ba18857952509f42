"""
Order lifecycle triggers.
- order created: links message, skipped once an order_created message was sent
- payment confirmed: skipped inside the two-minute window after a sent message
- status transitions map to payment/preparing/ready
- failures are logged and swallowed
"""
from unittest.mock import AsyncMock

import pytest

from order_notify.application.services.notification_triggers import build_order_created_message
from order_notify.domain.enums import ErrorCategory, NotificationType
from order_notify.domain.outcomes import Enqueued, OptedOut
from tests.fakes import PHONE


def rows_of(stack, notification_type):
    return [n for n in stack.notifications.rows.values() if n.notification_type == notification_type]


def test_order_created_message_has_links(order):
    message = build_order_created_message(order, "https://cocoloko.example/")

    assert "Pedido #42 Criado!" in message
    assert "Olá Maria Silva!" in message
    assert "• 1x Açaí 500ml - R$ 26.50" in message
    assert "Total: R$ 35.50" in message
    assert "https://cocoloko.example/order-status/order-1" in message
    assert "https://cocoloko.example/payment/order-1" in message


@pytest.mark.asyncio
async def test_order_created_queues_links_message_once(stack):
    outcome = await stack.triggers.on_order_created_with_links("order-1", "https://cocoloko.example")

    assert isinstance(outcome, Enqueued)
    row = stack.notifications.rows[outcome.notification_id]
    assert row.notification_type == NotificationType.ORDER_CREATED
    assert "https://cocoloko.example/payment/order-1" in row.message_content

    await stack.queue.process_pending_notifications()
    assert await stack.triggers.on_order_created_with_links("order-1", "https://cocoloko.example") is None
    assert len(rows_of(stack, NotificationType.ORDER_CREATED)) == 1


@pytest.mark.asyncio
async def test_payment_confirmation_skipped_inside_window(stack):
    await stack.triggers.on_order_created_with_links("order-1", "https://cocoloko.example")
    await stack.queue.process_pending_notifications()

    assert await stack.triggers.on_payment_confirmed("order-1") is None
    assert rows_of(stack, NotificationType.PAYMENT_CONFIRMED) == []

    stack.clock.advance(minutes=3)
    outcome = await stack.triggers.on_payment_confirmed("order-1")
    assert isinstance(outcome, Enqueued)
    assert len(rows_of(stack, NotificationType.PAYMENT_CONFIRMED)) == 1


@pytest.mark.asyncio
async def test_pending_order_created_does_not_block_payment(stack):
    await stack.triggers.on_order_created_with_links("order-1", "https://cocoloko.example")

    assert isinstance(await stack.triggers.on_payment_confirmed("order-1"), Enqueued)


@pytest.mark.asyncio
async def test_preparing_and_ready_are_sent_once(stack):
    assert isinstance(await stack.triggers.on_order_preparing("order-1"), Enqueued)
    await stack.queue.process_pending_notifications()
    assert await stack.triggers.on_order_preparing("order-1") is None

    assert isinstance(await stack.triggers.on_order_ready("order-1"), Enqueued)
    assert len(rows_of(stack, NotificationType.PREPARING)) == 1
    assert len(rows_of(stack, NotificationType.READY)) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("new_status, old_status, expected_type", [
    ("paid", "pending_payment", NotificationType.PAYMENT_CONFIRMED),
    ("paid", None, NotificationType.PAYMENT_CONFIRMED),
    ("in_preparation", "paid", NotificationType.PREPARING),
    ("ready", "in_preparation", NotificationType.READY),
])
async def test_status_change_mapping(stack, new_status, old_status, expected_type):
    outcome = await stack.triggers.on_order_status_change("order-1", new_status, old_status)

    assert isinstance(outcome, Enqueued)
    assert stack.notifications.rows[outcome.notification_id].notification_type == expected_type


@pytest.mark.asyncio
@pytest.mark.parametrize("new_status, old_status", [
    ("paid", "in_preparation"),
    ("delivered", "ready"),
    ("cancelled", None),
])
async def test_status_change_without_notification(stack, new_status, old_status):
    assert await stack.triggers.on_order_status_change("order-1", new_status, old_status) is None
    assert stack.notifications.rows == {}


@pytest.mark.asyncio
async def test_opted_out_customer_is_reported(stack):
    await stack.registry.opt_out(PHONE)

    assert await stack.triggers.on_order_ready("order-1") == OptedOut()
    assert stack.notifications.rows == {}


@pytest.mark.asyncio
async def test_missing_order_is_skipped(stack):
    assert await stack.triggers.on_order_ready("missing") is None
    assert await stack.triggers.on_payment_confirmed("missing") is None
    assert stack.notifications.rows == {}


@pytest.mark.asyncio
async def test_failures_are_logged_and_swallowed(stack):
    stack.orders.get_order = AsyncMock(side_effect=RuntimeError("database connection lost"))

    assert await stack.triggers.on_order_ready("order-1") is None
    assert await stack.triggers.on_order_status_change("order-1", "paid") is None

    operations = [e.context["operation"] for e in stack.errors.entries]
    assert operations == ["trigger_ready_notification", "trigger_payment_confirmation"]
    assert stack.errors.entries[0].order_id == "order-1"
    assert stack.errors.entries[0].category == ErrorCategory.CONNECTION
    assert stack.notifications.rows == {}
