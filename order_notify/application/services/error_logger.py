"""Categorized error logging for the delivery subsystem.

Errors are classified, their context is scrubbed of message bodies, they
are written to the structured log and to the ``error_logs`` table, and
alert thresholds are evaluated. ``log_error`` never raises.
"""

import traceback
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

import structlog

from order_notify.application.services.error_classifier import (
    categorize_error,
    determine_severity,
    error_text,
    is_retryable_error,
)
from order_notify.application.services.phone_cipher import PhoneCipher
from order_notify.application.services.phone_validator import mask_phone
from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.enums import AlertType, ErrorCategory, ErrorSeverity
from order_notify.domain.repositories.error_log_repository import AlertRepository, ErrorLogRepository
from order_notify.domain.schemas.monitoring import Alert, ErrorContext, ErrorLogEntry, ErrorStats

logger = structlog.get_logger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset({
    "message",
    "messagecontent",
    "message_content",
    "text",
    "body",
    "content",
    "custommessage",
    "custom_message",
})

ERROR_RATE_ALERT_THRESHOLD = 10  # errors per hour
CATEGORY_ALERT_THRESHOLD = 5  # errors per category in the last hour
RECENT_ERRORS_LIMIT = 10


def sanitize_context(value: Any) -> Any:
    """Recursively replace message-content fields with a placeholder."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else sanitize_context(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_context(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def format_stack(error: BaseException | str) -> Optional[str]:
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return None


class ErrorLogger:

    def __init__(
        self,
        errors: ErrorLogRepository,
        alerts: AlertRepository,
        cipher: PhoneCipher,
        retention_days: int = 30,
        clock: Clock = utcnow,
    ):
        self.errors = errors
        self.alerts = alerts
        self.cipher = cipher
        self.retention_days = retention_days
        self.clock = clock

    async def log_error(self, error: BaseException | str, context: ErrorContext) -> Optional[ErrorLogEntry]:
        """Classify, log, persist and alert. Returns the entry, or None if it could not be built."""
        try:
            category = categorize_error(error)
            severity = determine_severity(category)
            entry = ErrorLogEntry(
                id=str(uuid4()),
                category=category,
                severity=severity,
                error_message=error_text(error),
                error_stack=format_stack(error),
                context=sanitize_context({"operation": context.operation, **context.additional_data}),
                order_id=context.order_id,
                customer_phone=self.cipher.encrypt_safe(context.customer_phone) if context.customer_phone else None,
                notification_id=context.notification_id,
                is_retryable=is_retryable_error(error),
                timestamp=self.clock(),
            )
        except Exception:
            logger.exception("error_log_build_failed", operation=context.operation)
            return None

        self._emit(entry, context)

        try:
            await self.errors.add(entry)
        except Exception:
            logger.exception("error_log_store_failed", category=category.value)

        try:
            await self.check_alert_thresholds(category, severity)
        except Exception:
            logger.exception("alert_threshold_check_failed", category=category.value)

        return entry

    def _emit(self, entry: ErrorLogEntry, context: ErrorContext) -> None:
        fields = {
            "category": entry.category.value,
            "severity": entry.severity.value,
            "is_retryable": entry.is_retryable,
            "error": entry.error_message,
            "operation": context.operation,
            "order_id": entry.order_id,
            "notification_id": entry.notification_id,
            "phone": mask_phone(context.customer_phone) if context.customer_phone else None,
        }
        if entry.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            logger.error("delivery_error", **fields)
        elif entry.severity == ErrorSeverity.MEDIUM:
            logger.warning("delivery_error", **fields)
        else:
            logger.info("delivery_error", **fields)

    async def check_alert_thresholds(self, category: ErrorCategory, severity: ErrorSeverity) -> None:
        if severity == ErrorSeverity.CRITICAL:
            await self.raise_alert(
                AlertType.CRITICAL_ERROR, category, f"Critical WhatsApp error detected: {category.value}"
            )
            return

        stats = await self.get_error_stats(self.clock() - timedelta(hours=1))

        if stats.error_rate > ERROR_RATE_ALERT_THRESHOLD:
            await self.raise_alert(
                AlertType.HIGH_ERROR_RATE,
                category,
                f"High error rate detected: {stats.error_rate:.1f} errors/hour",
                stats.model_dump(mode="json", exclude={"recent_errors"}),
            )

        category_count = stats.errors_by_category.get(category.value, 0)
        if category_count > CATEGORY_ALERT_THRESHOLD:
            await self.raise_alert(
                AlertType.CATEGORY_THRESHOLD,
                category,
                f"High error count for {category.value}: {category_count} errors in last hour",
            )

    async def raise_alert(
        self,
        alert_type: AlertType,
        category: ErrorCategory,
        message: str,
        metadata: Optional[dict] = None,
    ) -> Alert:
        alert = Alert(
            id=str(uuid4()),
            alert_type=alert_type,
            category=category,
            message=message,
            metadata=metadata or {},
            created_at=self.clock(),
        )
        logger.error("whatsapp_alert", alert_type=alert_type.value, category=category.value, detail=message)
        try:
            await self.alerts.add(alert)
        except Exception:
            logger.exception("alert_store_failed", alert_type=alert_type.value)
        return alert

    async def get_error_stats(self, since: Optional[datetime] = None) -> ErrorStats:
        now = self.clock()
        since = since or now - timedelta(hours=24)
        try:
            entries = await self.errors.list_since(since)
        except Exception:
            logger.exception("error_stats_failed")
            return ErrorStats()

        hours = (now - since).total_seconds() / 3600
        return ErrorStats(
            total_errors=len(entries),
            errors_by_category=dict(Counter(e.category.value for e in entries)),
            errors_by_severity=dict(Counter(e.severity.value for e in entries)),
            recent_errors=[self._for_display(e) for e in entries[:RECENT_ERRORS_LIMIT]],
            error_rate=len(entries) / hours if hours > 0 else 0.0,
        )

    async def get_order_errors(self, order_id: str) -> list[ErrorLogEntry]:
        try:
            entries = await self.errors.list_for_order(order_id)
        except Exception:
            logger.exception("order_errors_failed", order_id=order_id)
            return []
        return [self._for_display(e) for e in entries]

    async def cleanup_old_logs(self, retention_days: Optional[int] = None) -> int:
        days = retention_days if retention_days is not None else self.retention_days
        cutoff = self.clock() - timedelta(days=days)
        try:
            deleted = await self.errors.delete_older_than(cutoff)
        except Exception:
            logger.exception("error_log_cleanup_failed")
            return 0
        logger.info("error_logs_cleaned", deleted=deleted, retention_days=days)
        return deleted

    def _for_display(self, entry: ErrorLogEntry) -> ErrorLogEntry:
        if not entry.customer_phone:
            return entry
        return entry.model_copy(update={"customer_phone": self.cipher.decrypt_safe(entry.customer_phone)})
