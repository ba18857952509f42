"""
SQLAlchemy Implementation of the Order Provider.
Reads the ordering backend's ``orders`` / ``order_items`` tables.
"""

from typing import Optional

from order_notify.core.timeutils import ensure_utc
from order_notify.domain.models.order import Order
from order_notify.domain.repositories.order_provider import OrderProvider
from order_notify.domain.schemas.notification import OrderData, OrderItem
from order_notify.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyOrderProvider(SQLAlchemyRepository[Order], OrderProvider):

    def __init__(self, session_factory):
        super().__init__(session_factory, Order)

    async def get_order(self, order_id: str) -> Optional[OrderData]:
        async with self.session_factory() as session:
            order = await self._get_row(session, order_id)
            if order is None:
                return None
            return OrderData(
                id=order.id,
                order_number=order.order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                table_number=order.table_number,
                total_amount=float(order.total_amount),
                items=[
                    OrderItem(item_name=i.item_name, quantity=i.quantity, unit_price=float(i.unit_price))
                    for i in order.items
                ],
                status=order.status,
                created_at=ensure_utc(order.created_at),
                payment_method=order.payment_method,
                payment_confirmed_at=ensure_utc(order.payment_confirmed_at),
            )
