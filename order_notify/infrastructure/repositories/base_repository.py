"""
Shared plumbing for the async SQLAlchemy repositories.

Repositories are long-lived (the queue loop outlives any request), so each
one holds a session factory and opens a short session per operation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_notify.core.timeutils import ensure_utc
from order_notify.infrastructure.database import Base

ModelType = TypeVar("ModelType", bound=Base)


def column_value(value: Any) -> Any:
    """Convert domain values (enums, aware datetimes) into column values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: column_value(value) for key, value in fields.items()}


class SQLAlchemyRepository(Generic[ModelType]):
    """Generic async repository over one mapped model."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], model: Type[ModelType]):
        self.session_factory = session_factory
        self.model = model

    async def _get_row(self, session: AsyncSession, id: str) -> Optional[ModelType]:
        return await session.get(self.model, id)

    async def _insert(self, obj_data: Dict[str, Any]) -> ModelType:
        async with self.session_factory() as session:
            db_obj = self.model(**column_values(obj_data))
            session.add(db_obj)
            await session.commit()
            return db_obj

    async def _update_by_id(self, id: str, fields: Dict[str, Any]) -> Optional[ModelType]:
        async with self.session_factory() as session:
            db_obj = await self._get_row(session, id)
            if db_obj is None:
                return None
            for field, value in column_values(fields).items():
                if hasattr(db_obj, field):
                    setattr(db_obj, field, value)
            await session.commit()
            return db_obj
