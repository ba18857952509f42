"""
SQLAlchemy Implementation of Notification Repository.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select, update

from order_notify.core.timeutils import ensure_utc
from order_notify.domain.enums import NotificationStatus
from order_notify.domain.models.notification import Notification
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.schemas.notification import QueuedNotification
from order_notify.infrastructure.repositories.base_repository import SQLAlchemyRepository, column_value

PENDING = NotificationStatus.PENDING.value


def to_schema(row: Notification) -> QueuedNotification:
    item = QueuedNotification.model_validate(row)
    return item.model_copy(update={
        "scheduled_at": ensure_utc(item.scheduled_at),
        "sent_at": ensure_utc(item.sent_at),
        "created_at": ensure_utc(item.created_at),
    })


class SQLAlchemyNotificationRepository(SQLAlchemyRepository[Notification], NotificationRepository):
    """Notification queue backed by the ``notification_queue`` table."""

    def __init__(self, session_factory):
        super().__init__(session_factory, Notification)

    async def add(self, notification: QueuedNotification) -> None:
        await self._insert(notification.model_dump())

    async def get(self, notification_id: str) -> Optional[QueuedNotification]:
        async with self.session_factory() as session:
            row = await self._get_row(session, notification_id)
            return to_schema(row) if row else None

    async def update(self, notification_id: str, **fields: Any) -> None:
        await self._update_by_id(notification_id, fields)

    async def fetch_due(self, now: datetime, max_attempts: int, limit: int) -> List[QueuedNotification]:
        stmt = (
            select(Notification)
            .where(
                Notification.status == PENDING,
                Notification.attempts < max_attempts,
                Notification.scheduled_at <= ensure_utc(now),
            )
            .order_by(Notification.scheduled_at.asc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_schema(r) for r in rows]

    async def list_for_order(self, order_id: str) -> List[QueuedNotification]:
        stmt = (
            select(Notification)
            .where(Notification.order_id == order_id)
            .order_by(Notification.created_at.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_schema(r) for r in rows]

    async def list_since(self, since: datetime) -> List[QueuedNotification]:
        stmt = (
            select(Notification)
            .where(Notification.created_at >= ensure_utc(since))
            .order_by(Notification.created_at.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_schema(r) for r in rows]

    async def cancel_if_pending(self, notification_id: str) -> bool:
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.status == PENDING)
            .values(status=NotificationStatus.CANCELLED.value)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def cancel_pending_for_phone(self, phone_hash: str) -> int:
        stmt = (
            update(Notification)
            .where(Notification.customer_phone_hash == phone_hash, Notification.status == PENDING)
            .values(status=NotificationStatus.CANCELLED.value)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

    async def reset_failed(self, max_attempts: int, now: datetime) -> int:
        stmt = (
            update(Notification)
            .where(
                Notification.status == NotificationStatus.FAILED.value,
                Notification.attempts < max_attempts,
            )
            .values(status=PENDING, attempts=0, error_message=None, scheduled_at=ensure_utc(now))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(Notification.status, func.count(Notification.id)).group_by(Notification.status)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()
            return {status: count for status, count in rows}

    async def count_created_since(self, since: datetime, status: Optional[str] = None) -> int:
        stmt = select(func.count(Notification.id)).where(Notification.created_at >= ensure_utc(since))
        if status is not None:
            stmt = stmt.where(Notification.status == column_value(status))
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def count_for_phone_since(self, phone_hash: str, since: datetime) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.customer_phone_hash == phone_hash,
            Notification.created_at >= ensure_utc(since),
        )
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def exists_for_order(
        self,
        order_id: str,
        notification_types: Sequence[str],
        statuses: Sequence[str],
        sent_since: Optional[datetime] = None,
    ) -> bool:
        stmt = select(Notification.id).where(
            Notification.order_id == order_id,
            Notification.notification_type.in_([column_value(t) for t in notification_types]),
            Notification.status.in_([column_value(s) for s in statuses]),
        )
        if sent_since is not None:
            stmt = stmt.where(Notification.sent_at >= ensure_utc(sent_since))
        async with self.session_factory() as session:
            return (await session.execute(stmt.limit(1))).first() is not None
