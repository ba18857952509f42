"""
Error Log and Alert Repository Interfaces.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from order_notify.domain.schemas.monitoring import Alert, ErrorLogEntry


class ErrorLogRepository(Protocol):
    """Append-only error log storage."""

    async def add(self, entry: ErrorLogEntry) -> None:
        ...

    async def list_since(self, since: datetime) -> List[ErrorLogEntry]:
        """Entries at or after ``since``, newest first."""
        ...

    async def list_for_order(self, order_id: str) -> List[ErrorLogEntry]:
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        ...


class AlertRepository(Protocol):
    """Alerts raised by the error logger and the delivery monitor."""

    async def add(self, alert: Alert) -> None:
        ...

    async def find_recent(self, alert_type: str, since: datetime) -> Optional[Alert]:
        """Most recent alert of a type created at or after ``since``."""
        ...

    async def list_unresolved(self) -> List[Alert]:
        ...

    async def resolve(self, alert_id: str, resolved_at: datetime) -> bool:
        ...
