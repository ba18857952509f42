"""Operational alert raised by the error logger or the delivery monitor."""

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text

from order_notify.infrastructure.database import Base


class AlertRecord(Base):
    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True)
    alert_type = Column(String(32), nullable=False, index=True)
    category = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    alert_metadata = Column("metadata", JSON, nullable=False, default=dict)
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Alert {self.alert_type} resolved={self.is_resolved}>"
