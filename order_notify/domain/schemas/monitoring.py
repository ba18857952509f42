"""Pydantic schemas for error logs, alerts and delivery statistics."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from order_notify.domain.enums import (
    AlertType,
    ErrorCategory,
    ErrorSeverity,
    HealthStatus,
    NotificationStatus,
    NotificationType,
)


class ErrorContext(BaseModel):
    """Where an error happened. ``additional_data`` is sanitized before storage."""
    operation: str
    order_id: Optional[str] = None
    customer_phone: Optional[str] = None
    notification_id: Optional[str] = None
    additional_data: dict[str, Any] = Field(default_factory=dict)


class ErrorLogEntry(BaseModel):
    id: Optional[str] = None
    category: ErrorCategory
    severity: ErrorSeverity
    error_message: str
    error_stack: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)
    order_id: Optional[str] = None
    customer_phone: Optional[str] = None
    notification_id: Optional[str] = None
    is_retryable: bool = False
    timestamp: datetime

    model_config = {"from_attributes": True}


class ErrorStats(BaseModel):
    total_errors: int = 0
    errors_by_category: dict[str, int] = Field(default_factory=dict)
    errors_by_severity: dict[str, int] = Field(default_factory=dict)
    recent_errors: list[ErrorLogEntry] = Field(default_factory=list)
    error_rate: float = 0.0  # errors per hour


class Alert(BaseModel):
    id: Optional[str] = None
    alert_type: AlertType
    category: ErrorCategory
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime


class DeliveryRecord(BaseModel):
    id: str
    order_id: str
    notification_type: NotificationType
    status: NotificationStatus
    attempts: int
    delivery_time_ms: Optional[float] = None
    error_message: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None


class DeliveryStats(BaseModel):
    total_sent: int = 0
    total_failed: int = 0
    total_pending: int = 0
    delivery_rate: float = 0.0
    failure_rate: float = 0.0
    average_delivery_time_ms: float = 0.0
    recent_deliveries: list[DeliveryRecord] = Field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.total_sent + self.total_failed


class DeliveryTrend(BaseModel):
    date: str
    sent: int
    failed: int
    delivery_rate: float


class SystemHealth(BaseModel):
    delivery: DeliveryStats
    errors: ErrorStats
    alerts: list[Alert]
    status: HealthStatus
