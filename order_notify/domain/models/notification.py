"""Queued WhatsApp notification: one row per notification attempt-series."""

from sqlalchemy import Column, DateTime, Integer, String, Text, Index

from order_notify.infrastructure.database import Base


class Notification(Base):
    __tablename__ = "notification_queue"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(64), nullable=False, index=True)
    customer_phone = Column(Text, nullable=False)  # AES-GCM ciphertext, or plaintext without a key
    customer_phone_hash = Column(String(64), nullable=True, index=True)
    notification_type = Column(String(32), nullable=False)
    message_content = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default="pending")  # pending, sent, failed, cancelled
    attempts = Column(Integer, nullable=False, default=0)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    whatsapp_message_id = Column(String(128), nullable=True)
    dedupe_key = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index("ix_notification_queue_status_scheduled", "status", "scheduled_at"),
    )

    def __repr__(self):
        return f"<Notification {self.id} {self.notification_type} - {self.status}>"
