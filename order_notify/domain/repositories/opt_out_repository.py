"""
Opt-Out Repository Interface.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from order_notify.domain.schemas.opt_out import OptOutRecord


class OptOutRepository(Protocol):
    """Interface for customer opt-out records, keyed by phone hash."""

    async def get_by_phone_hash(self, phone_hash: str) -> Optional[OptOutRecord]:
        ...

    async def upsert(self, record: OptOutRecord) -> OptOutRecord:
        """Insert, or refresh opted_out_at/reason on the existing record for the same phone."""
        ...

    async def delete_by_phone_hash(self, phone_hash: str) -> bool:
        ...

    async def list_all(self) -> List[OptOutRecord]:
        """All records, most recent opt-out first."""
        ...

    async def count_since(self, since: Optional[datetime] = None) -> int:
        """Records opted out at or after ``since`` (all records when None)."""
        ...
