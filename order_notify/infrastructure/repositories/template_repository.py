"""
SQLAlchemy Implementation of Template Repository.
"""

from typing import Any, List, Optional

from sqlalchemy import select

from order_notify.core.timeutils import ensure_utc
from order_notify.domain.models.message_template import MessageTemplateRecord
from order_notify.domain.repositories.template_repository import TemplateRepository
from order_notify.domain.schemas.template import MessageTemplate
from order_notify.infrastructure.repositories.base_repository import SQLAlchemyRepository, column_value


def to_schema(row: MessageTemplateRecord) -> MessageTemplate:
    template = MessageTemplate.model_validate(row)
    return template.model_copy(update={
        "created_at": ensure_utc(template.created_at),
        "updated_at": ensure_utc(template.updated_at),
    })


class SQLAlchemyTemplateRepository(SQLAlchemyRepository[MessageTemplateRecord], TemplateRepository):

    def __init__(self, session_factory):
        super().__init__(session_factory, MessageTemplateRecord)

    async def get_active(self, template_type: str) -> Optional[MessageTemplate]:
        stmt = (
            select(MessageTemplateRecord)
            .where(
                MessageTemplateRecord.template_type == column_value(template_type),
                MessageTemplateRecord.is_active.is_(True),
            )
            .order_by(MessageTemplateRecord.created_at.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return to_schema(row) if row else None

    async def list_all(self) -> List[MessageTemplate]:
        stmt = select(MessageTemplateRecord).order_by(
            MessageTemplateRecord.template_type, MessageTemplateRecord.created_at.desc()
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_schema(r) for r in rows]

    async def add(self, template: MessageTemplate) -> MessageTemplate:
        row = await self._insert(template.model_dump())
        return to_schema(row)

    async def update(self, template_id: str, **fields: Any) -> Optional[MessageTemplate]:
        row = await self._update_by_id(template_id, fields)
        return to_schema(row) if row else None
