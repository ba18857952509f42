"""
SQLAlchemy Implementations of the Error Log and Alert Repositories.
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import delete, select, update

from order_notify.core.timeutils import ensure_utc
from order_notify.domain.models.alert import AlertRecord
from order_notify.domain.models.error_log import ErrorLog
from order_notify.domain.repositories.error_log_repository import AlertRepository, ErrorLogRepository
from order_notify.domain.schemas.monitoring import Alert, ErrorLogEntry
from order_notify.infrastructure.repositories.base_repository import SQLAlchemyRepository, column_value


def error_to_schema(row: ErrorLog) -> ErrorLogEntry:
    return ErrorLogEntry(
        id=row.id,
        category=row.category,
        severity=row.severity,
        error_message=row.error_message,
        error_stack=row.error_stack,
        context=row.context or {},
        order_id=row.order_id,
        customer_phone=row.customer_phone,
        notification_id=row.notification_id,
        is_retryable=row.is_retryable,
        timestamp=ensure_utc(row.created_at),
    )


def alert_to_schema(row: AlertRecord) -> Alert:
    return Alert(
        id=row.id,
        alert_type=row.alert_type,
        category=row.category,
        message=row.message,
        metadata=row.alert_metadata or {},
        is_resolved=row.is_resolved,
        resolved_at=ensure_utc(row.resolved_at),
        created_at=ensure_utc(row.created_at),
    )


class SQLAlchemyErrorLogRepository(SQLAlchemyRepository[ErrorLog], ErrorLogRepository):

    def __init__(self, session_factory):
        super().__init__(session_factory, ErrorLog)

    async def add(self, entry: ErrorLogEntry) -> None:
        await self._insert({
            "id": entry.id or str(uuid4()),
            "category": entry.category,
            "severity": entry.severity,
            "error_message": entry.error_message,
            "error_stack": entry.error_stack,
            "context": entry.context,
            "order_id": entry.order_id,
            "customer_phone": entry.customer_phone,
            "notification_id": entry.notification_id,
            "is_retryable": entry.is_retryable,
            "created_at": entry.timestamp,
        })

    async def list_since(self, since: datetime) -> List[ErrorLogEntry]:
        stmt = (
            select(ErrorLog)
            .where(ErrorLog.created_at >= ensure_utc(since))
            .order_by(ErrorLog.created_at.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [error_to_schema(r) for r in rows]

    async def list_for_order(self, order_id: str) -> List[ErrorLogEntry]:
        stmt = (
            select(ErrorLog)
            .where(ErrorLog.order_id == order_id)
            .order_by(ErrorLog.created_at.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [error_to_schema(r) for r in rows]

    async def delete_older_than(self, cutoff: datetime) -> int:
        stmt = delete(ErrorLog).where(ErrorLog.created_at < ensure_utc(cutoff))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount


class SQLAlchemyAlertRepository(SQLAlchemyRepository[AlertRecord], AlertRepository):

    def __init__(self, session_factory):
        super().__init__(session_factory, AlertRecord)

    async def add(self, alert: Alert) -> None:
        await self._insert({
            "id": alert.id or str(uuid4()),
            "alert_type": alert.alert_type,
            "category": alert.category,
            "message": alert.message,
            "alert_metadata": alert.metadata,
            "is_resolved": alert.is_resolved,
            "resolved_at": alert.resolved_at,
            "created_at": alert.created_at,
        })

    async def find_recent(self, alert_type: str, since: datetime) -> Optional[Alert]:
        stmt = (
            select(AlertRecord)
            .where(
                AlertRecord.alert_type == column_value(alert_type),
                AlertRecord.created_at >= ensure_utc(since),
            )
            .order_by(AlertRecord.created_at.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return alert_to_schema(row) if row else None

    async def list_unresolved(self) -> List[Alert]:
        stmt = (
            select(AlertRecord)
            .where(AlertRecord.is_resolved.is_(False))
            .order_by(AlertRecord.created_at.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [alert_to_schema(r) for r in rows]

    async def resolve(self, alert_id: str, resolved_at: datetime) -> bool:
        stmt = (
            update(AlertRecord)
            .where(AlertRecord.id == alert_id, AlertRecord.is_resolved.is_(False))
            .values(is_resolved=True, resolved_at=ensure_utc(resolved_at))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0
