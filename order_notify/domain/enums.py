"""Closed vocabularies shared by the notification subsystem."""

from enum import Enum


class NotificationType(str, Enum):
    ORDER_CREATED = "order_created"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PREPARING = "preparing"
    READY = "ready"
    CUSTOM = "custom"


class NotificationStatus(str, Enum):
    """Persisted row states. A row being retried stays PENDING with a later scheduled_at."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorCategory(str, Enum):
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    MESSAGE_DELIVERY = "message_delivery"
    PHONE_VALIDATION = "phone_validation"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    DATABASE = "database"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TimePeriod(str, Enum):
    LAST_HOUR = "last_hour"
    LAST_24_HOURS = "last_24_hours"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"


class AlertType(str, Enum):
    CRITICAL_ERROR = "critical_error"
    HIGH_ERROR_RATE = "high_error_rate"
    CATEGORY_THRESHOLD = "category_threshold"
    HIGH_FAILURE_RATE = "high_failure_rate"
    HIGH_PENDING_COUNT = "high_pending_count"
    SLOW_DELIVERY = "slow_delivery"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
