"""
Notification Repository Interface.
Defines data access operations for the notification queue.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from order_notify.domain.schemas.notification import QueuedNotification


class NotificationRepository(Protocol):
    """Interface for notification queue persistence."""

    async def add(self, notification: QueuedNotification) -> None:
        """Persist a new queue row."""
        ...

    async def get(self, notification_id: str) -> Optional[QueuedNotification]:
        """Get a single row by ID."""
        ...

    async def update(self, notification_id: str, **fields: Any) -> None:
        """Set the given columns on one row."""
        ...

    async def fetch_due(self, now: datetime, max_attempts: int, limit: int) -> List[QueuedNotification]:
        """Pending rows with attempts < max_attempts and scheduled_at <= now, oldest first."""
        ...

    async def list_for_order(self, order_id: str) -> List[QueuedNotification]:
        """All rows for an order, newest first."""
        ...

    async def list_since(self, since: datetime) -> List[QueuedNotification]:
        """Rows created at or after ``since``, newest first."""
        ...

    async def cancel_if_pending(self, notification_id: str) -> bool:
        """Cancel a row only if it is still pending. Returns whether it changed."""
        ...

    async def cancel_pending_for_phone(self, phone_hash: str) -> int:
        """Cancel every pending row for a phone. Returns the number cancelled."""
        ...

    async def reset_failed(self, max_attempts: int, now: datetime) -> int:
        """Move failed rows with attempts < max_attempts back to pending."""
        ...

    async def count_by_status(self) -> Dict[str, int]:
        """Row counts grouped by status."""
        ...

    async def count_created_since(self, since: datetime, status: Optional[str] = None) -> int:
        """Rows created since ``since``, optionally restricted to one status."""
        ...

    async def count_for_phone_since(self, phone_hash: str, since: datetime) -> int:
        """Rows created for one phone since ``since`` (rate limiting)."""
        ...

    async def exists_for_order(
        self,
        order_id: str,
        notification_types: Sequence[str],
        statuses: Sequence[str],
        sent_since: Optional[datetime] = None,
    ) -> bool:
        """Whether an order already has a matching notification, optionally sent at or after ``sent_since``."""
        ...
