"""Order-lifecycle entry points for WhatsApp notifications.

Trigger failures are recorded through the error logger and swallowed so a
notification problem never breaks the order or payment flow.
"""

from datetime import timedelta
from typing import Optional

import structlog

from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.message_variations import items_with_totals, money
from order_notify.application.services.queue_manager import QueueManager
from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.enums import NotificationStatus, NotificationType
from order_notify.domain.outcomes import EnqueueOutcome, OptedOut, describe_outcome
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.repositories.order_provider import OrderProvider
from order_notify.domain.schemas.monitoring import ErrorContext
from order_notify.domain.schemas.notification import NotificationRequest, OrderData

logger = structlog.get_logger(__name__)

PAYMENT_DEDUP_WINDOW = timedelta(minutes=2)


def build_order_created_message(order: OrderData, base_url: str) -> str:
    base = base_url.rstrip("/")
    return (
        f"🎉 *Pedido #{order.order_number} Criado!*\n\n"
        f"Olá {order.customer_name}! Recebemos o seu pedido!\n\n"
        f"📋 *Itens do Pedido:*\n{items_with_totals(order)}\n\n"
        f"💰 *Total: {money(order.total_amount)}*\n\n"
        f"🔗 *Links Úteis:*\n"
        f"📱 Ver Pedido: {base}/order-status/{order.id}\n"
        f"💳 Ir para Pagamento: {base}/payment/{order.id}\n\n"
        "Você pode visualizar seu pedido, editá-lo ou prosseguir com o pagamento "
        "através dos links acima."
    )


class NotificationTriggerService:

    def __init__(
        self,
        queue: QueueManager,
        orders: OrderProvider,
        notifications: NotificationRepository,
        error_logger: ErrorLogger,
        clock: Clock = utcnow,
    ):
        self.queue = queue
        self.orders = orders
        self.notifications = notifications
        self.error_logger = error_logger
        self.clock = clock

    async def on_order_created_with_links(self, order_id: str, base_url: str) -> Optional[EnqueueOutcome]:
        """Queue the order-created message with status and payment links."""
        try:
            order = await self._get_order(order_id)
            if order is None:
                return None
            if await self._already_sent(order_id, NotificationType.ORDER_CREATED):
                return None

            return await self._enqueue(
                order,
                NotificationType.ORDER_CREATED,
                custom_message=build_order_created_message(order, base_url),
            )
        except Exception as e:
            await self._report(e, "trigger_order_creation", order_id, {"notification_type": "order_created"})
            return None

    async def on_payment_confirmed(self, order_id: str) -> Optional[EnqueueOutcome]:
        """Skipped when an order-created or payment message went out in the last two minutes."""
        try:
            order = await self._get_order(order_id)
            if order is None:
                return None

            recent = await self.notifications.exists_for_order(
                order_id,
                [NotificationType.ORDER_CREATED.value, NotificationType.PAYMENT_CONFIRMED.value],
                [NotificationStatus.SENT.value],
                sent_since=self.clock() - PAYMENT_DEDUP_WINDOW,
            )
            if recent:
                logger.info("trigger_skipped_recent_notification", order_id=order_id, trigger="payment_confirmed")
                return None

            return await self._enqueue(order, NotificationType.PAYMENT_CONFIRMED)
        except Exception as e:
            await self._report(e, "trigger_payment_confirmation", order_id, {"notification_type": "payment_confirmed"})
            return None

    async def on_order_preparing(self, order_id: str) -> Optional[EnqueueOutcome]:
        return await self._trigger_once(order_id, NotificationType.PREPARING, "trigger_preparing_notification")

    async def on_order_ready(self, order_id: str) -> Optional[EnqueueOutcome]:
        return await self._trigger_once(order_id, NotificationType.READY, "trigger_ready_notification")

    async def on_order_status_change(
        self,
        order_id: str,
        new_status: str,
        old_status: Optional[str] = None,
    ) -> Optional[EnqueueOutcome]:
        """Map an order status transition to the matching notification."""
        try:
            match new_status:
                case "paid":
                    if old_status in (None, "", "pending_payment"):
                        return await self.on_payment_confirmed(order_id)
                    logger.info("trigger_ignored_transition", order_id=order_id, old_status=old_status, new_status=new_status)
                case "in_preparation":
                    return await self.on_order_preparing(order_id)
                case "ready":
                    return await self.on_order_ready(order_id)
                case _:
                    logger.debug("trigger_no_notification_for_status", order_id=order_id, new_status=new_status)
            return None
        except Exception as e:
            await self._report(
                e,
                "trigger_status_change_notification",
                order_id,
                {"old_status": old_status, "new_status": new_status},
            )
            return None

    async def _trigger_once(
        self,
        order_id: str,
        notification_type: NotificationType,
        operation: str,
    ) -> Optional[EnqueueOutcome]:
        try:
            order = await self._get_order(order_id)
            if order is None:
                return None
            if await self._already_sent(order_id, notification_type):
                return None
            return await self._enqueue(order, notification_type)
        except Exception as e:
            await self._report(e, operation, order_id, {"notification_type": notification_type.value})
            return None

    async def _get_order(self, order_id: str) -> Optional[OrderData]:
        order = await self.orders.get_order(order_id)
        if order is None:
            logger.error("trigger_order_not_found", order_id=order_id)
        return order

    async def _already_sent(self, order_id: str, notification_type: NotificationType) -> bool:
        sent = await self.notifications.exists_for_order(
            order_id, [notification_type.value], [NotificationStatus.SENT.value]
        )
        if sent:
            logger.info("trigger_skipped_already_sent", order_id=order_id, notification_type=notification_type.value)
        return sent

    async def _enqueue(
        self,
        order: OrderData,
        notification_type: NotificationType,
        custom_message: Optional[str] = None,
    ) -> EnqueueOutcome:
        outcome = await self.queue.enqueue(NotificationRequest(
            order_id=order.id,
            customer_phone=order.customer_phone,
            customer_name=order.customer_name,
            notification_type=notification_type,
            order_details=order,
            custom_message=custom_message,
        ))

        described = describe_outcome(outcome)
        if isinstance(outcome, OptedOut):
            logger.info("trigger_customer_opted_out", order_id=order.id, notification_type=notification_type.value)
        elif described["status"] == "enqueued":
            logger.info("trigger_notification_queued", order_id=order.id, notification_type=notification_type.value)
        else:
            logger.warning(
                "trigger_notification_rejected",
                order_id=order.id,
                notification_type=notification_type.value,
                outcome=described["status"],
                reasons=described["reasons"],
            )
        return outcome

    async def _report(self, error: Exception, operation: str, order_id: str, data: dict) -> None:
        logger.error("trigger_failed", operation=operation, order_id=order_id, error=str(error))
        await self.error_logger.log_error(error, ErrorContext(
            operation=operation,
            order_id=order_id,
            additional_data=data,
        ))
