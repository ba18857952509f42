"""
Order Provider Interface.
Orders belong to the ordering backend; this subsystem only reads them.
"""

from typing import Optional, Protocol

from order_notify.domain.schemas.notification import OrderData


class OrderProvider(Protocol):

    async def get_order(self, order_id: str) -> Optional[OrderData]:
        """Order with its items, or None when it does not exist."""
        ...
