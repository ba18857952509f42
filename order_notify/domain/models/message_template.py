"""Editable message template with {{variable}} placeholders."""

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text

from order_notify.infrastructure.database import Base


class MessageTemplateRecord(Base):
    __tablename__ = "message_templates"

    id = Column(String(36), primary_key=True)
    template_type = Column(String(32), nullable=False, index=True)
    content = Column(Text, nullable=False)
    variables = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<MessageTemplate {self.template_type} active={self.is_active}>"
