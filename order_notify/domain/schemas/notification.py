"""Pydantic schemas for orders, queued notifications and queue statistics."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from order_notify.domain.enums import NotificationStatus, NotificationType


class OrderItem(BaseModel):
    item_name: str
    quantity: int
    unit_price: float

    model_config = {"from_attributes": True}


class OrderData(BaseModel):
    """Read-only view of an order, as provided by the ordering backend."""
    id: str
    order_number: int
    customer_name: str
    customer_phone: str
    table_number: Optional[str] = None
    total_amount: float
    items: list[OrderItem] = Field(default_factory=list)
    status: str
    created_at: datetime
    payment_method: Optional[str] = None
    payment_confirmed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationRequest(BaseModel):
    order_id: str
    customer_phone: str
    customer_name: str
    notification_type: NotificationType
    order_details: Optional[OrderData] = None
    custom_message: Optional[str] = None


class QueuedNotification(BaseModel):
    id: str
    order_id: str
    customer_phone: str
    customer_phone_hash: Optional[str] = None
    notification_type: NotificationType
    message_content: str = ""
    status: NotificationStatus = NotificationStatus.PENDING
    attempts: int = 0
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    whatsapp_message_id: Optional[str] = None
    dedupe_key: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProcessResult(BaseModel):
    notification_id: str
    success: bool
    error: Optional[str] = None


class QueueStats(BaseModel):
    pending: int = 0
    sent: int = 0
    failed: int = 0
    cancelled: int = 0
    total_today: int = 0
    delivery_rate: float = 0.0
