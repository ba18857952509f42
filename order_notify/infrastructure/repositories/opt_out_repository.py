"""
SQLAlchemy Implementation of Opt-Out Repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select

from order_notify.core.timeutils import ensure_utc
from order_notify.domain.models.opt_out import OptOut
from order_notify.domain.repositories.opt_out_repository import OptOutRepository
from order_notify.domain.schemas.opt_out import OptOutRecord
from order_notify.infrastructure.repositories.base_repository import SQLAlchemyRepository, column_values


def to_schema(row: OptOut) -> OptOutRecord:
    record = OptOutRecord.model_validate(row)
    return record.model_copy(update={
        "opted_out_at": ensure_utc(record.opted_out_at),
        "created_at": ensure_utc(record.created_at),
        "updated_at": ensure_utc(record.updated_at),
    })


class SQLAlchemyOptOutRepository(SQLAlchemyRepository[OptOut], OptOutRepository):
    """Opt-out registry backed by the ``opt_outs`` table."""

    def __init__(self, session_factory):
        super().__init__(session_factory, OptOut)

    async def get_by_phone_hash(self, phone_hash: str) -> Optional[OptOutRecord]:
        stmt = select(OptOut).where(OptOut.customer_phone_hash == phone_hash)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return to_schema(row) if row else None

    async def upsert(self, record: OptOutRecord) -> OptOutRecord:
        stmt = select(OptOut).where(OptOut.customer_phone_hash == record.customer_phone_hash)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                row = OptOut(**column_values(record.model_dump()))
                session.add(row)
            else:
                row.customer_phone = record.customer_phone
                row.opted_out_at = ensure_utc(record.opted_out_at)
                row.reason = record.reason
                row.updated_at = ensure_utc(record.updated_at or record.opted_out_at)
            await session.commit()
            return to_schema(row)

    async def delete_by_phone_hash(self, phone_hash: str) -> bool:
        stmt = delete(OptOut).where(OptOut.customer_phone_hash == phone_hash)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def list_all(self) -> List[OptOutRecord]:
        stmt = select(OptOut).order_by(OptOut.opted_out_at.desc())
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_schema(r) for r in rows]

    async def count_since(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(OptOut.id))
        if since is not None:
            stmt = stmt.where(OptOut.opted_out_at >= ensure_utc(since))
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()
