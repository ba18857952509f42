"""Append-only log of delivery subsystem errors."""

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text

from order_notify.infrastructure.database import Base


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id = Column(String(36), primary_key=True)
    category = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False)
    error_message = Column(Text, nullable=False)
    error_stack = Column(Text, nullable=True)
    context = Column(JSON, nullable=False, default=dict)
    order_id = Column(String(64), nullable=True, index=True)
    customer_phone = Column(Text, nullable=True)
    notification_id = Column(String(36), nullable=True)
    is_retryable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<ErrorLog {self.category}/{self.severity}>"
