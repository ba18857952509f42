"""WhatsApp Business policy checks run before a notification may be queued.

Hard violations block the enqueue; warnings are only logged.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

import pytz
import structlog

from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.enums import NotificationType
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.schemas.template import ComplianceResult

logger = structlog.get_logger(__name__)

PROHIBITED_CONTENT = (
    "spam",
    "phishing",
    "malware",
    "illegal",
    "adult content",
    "violence",
    "hate speech",
    "harassment",
)

ALLOWED_NOTIFICATION_TYPES = frozenset(t.value for t in NotificationType)

URL_PATTERN = re.compile(r"https?://\S+")
REPEATED_PUNCTUATION = re.compile(r"[!?]{2,}")

BUSINESS_HOURS_START = 8
BUSINESS_HOURS_END = 22
RATE_LIMIT_WARNING_RATIO = 0.8

COMPLIANCE_GUIDELINES = [
    "Messages must be transactional and related to customer orders",
    "Do not send promotional or marketing content",
    "Respect customer opt-out preferences",
    "Limit message frequency to avoid spam classification",
    "Keep messages concise and relevant",
    "Avoid excessive capitalization and punctuation",
    "Do not send messages late at night (10 PM - 8 AM)",
    "Include business name and contact information",
    "Provide clear opt-out instructions (reply PARAR to stop)",
    "Comply with WhatsApp Business API Terms of Service",
]


def merge(*results: ComplianceResult) -> ComplianceResult:
    violations = [v for r in results for v in r.violations]
    warnings = [w for r in results for w in r.warnings]
    return ComplianceResult(is_compliant=not violations, violations=violations, warnings=warnings)


class ComplianceChecker:
    """Content, timing and rate-limit policy checks."""

    def __init__(
        self,
        notifications: NotificationRepository,
        tz: pytz.BaseTzInfo,
        max_length: int = 4096,
        recommended_length: int = 1000,
        per_customer_limit: int = 10,
        global_limit: int = 1000,
        clock: Clock = utcnow,
    ):
        self.notifications = notifications
        self.tz = tz
        self.max_length = max_length
        self.recommended_length = recommended_length
        self.per_customer_limit = per_customer_limit
        self.global_limit = global_limit
        self.clock = clock

    def check_message_compliance(self, message: str) -> ComplianceResult:
        violations: list[str] = []
        warnings: list[str] = []
        message = message or ""
        length = len(message)

        if not message.strip():
            violations.append("Message cannot be empty")

        if length > self.max_length:
            violations.append(f"Message exceeds maximum length ({length}/{self.max_length} characters)")
        elif length > self.recommended_length:
            warnings.append(
                f"Message is longer than recommended ({length}/{self.recommended_length} characters)"
            )

        lowered = message.lower()
        found = [term for term in PROHIBITED_CONTENT if term in lowered]
        if found:
            warnings.append(f"Message may contain prohibited content: {', '.join(found)}")

        letters = [c for c in message if c.isalpha()]
        if length > 20 and letters:
            caps_ratio = sum(1 for c in letters if c.isupper()) / len(letters)
            if caps_ratio > 0.5:
                warnings.append("Message contains excessive capitalization (may be flagged as spam)")

        if length and len(REPEATED_PUNCTUATION.findall(message)) / length > 0.1:
            warnings.append("Message contains excessive punctuation (may be flagged as spam)")

        if len(URL_PATTERN.findall(message)) > 3:
            warnings.append("Message contains multiple URLs (may affect delivery rate)")

        return ComplianceResult(is_compliant=not violations, violations=violations, warnings=warnings)

    @staticmethod
    def is_notification_type_allowed(notification_type: str) -> bool:
        value = getattr(notification_type, "value", notification_type)
        return value in ALLOWED_NOTIFICATION_TYPES

    def is_appropriate_time(self, now: Optional[datetime] = None) -> ComplianceResult:
        """Outside 08:00-22:00 local time is a warning, never a violation."""
        local_hour = (now or self.clock()).astimezone(self.tz).hour
        warnings = []
        if local_hour >= BUSINESS_HOURS_END or local_hour < BUSINESS_HOURS_START:
            warnings.append(
                "Sending notifications outside business hours (8 AM - 10 PM) may reduce engagement"
            )
        return ComplianceResult(is_compliant=True, warnings=warnings)

    async def check_rate_limits(self, phone_hash: str) -> ComplianceResult:
        """Rolling one-hour caps, per customer and global."""
        violations: list[str] = []
        warnings: list[str] = []
        since = self.clock() - timedelta(hours=1)

        try:
            customer_count = await self.notifications.count_for_phone_since(phone_hash, since)
            total_count = await self.notifications.count_created_since(since)
        except Exception as e:
            logger.error("rate_limit_lookup_failed", error=str(e))
            return ComplianceResult(is_compliant=True, warnings=["Unable to verify rate limits"])

        if customer_count >= self.per_customer_limit:
            violations.append(
                f"Rate limit exceeded for customer ({customer_count}/{self.per_customer_limit} per hour)"
            )
        elif customer_count >= self.per_customer_limit * RATE_LIMIT_WARNING_RATIO:
            warnings.append(
                f"Approaching rate limit for customer ({customer_count}/{self.per_customer_limit} per hour)"
            )

        if total_count >= self.global_limit:
            violations.append(f"Total rate limit exceeded ({total_count}/{self.global_limit} per hour)")
        elif total_count >= self.global_limit * RATE_LIMIT_WARNING_RATIO:
            warnings.append(f"Approaching total rate limit ({total_count}/{self.global_limit} per hour)")

        return ComplianceResult(is_compliant=not violations, violations=violations, warnings=warnings)

    async def check_full_compliance(
        self,
        message: str,
        notification_type: str,
        phone_hash: str,
    ) -> ComplianceResult:
        type_check = ComplianceResult()
        if not self.is_notification_type_allowed(notification_type):
            value = getattr(notification_type, "value", notification_type)
            type_check = ComplianceResult(is_compliant=False, violations=[f"Invalid notification type: {value}"])

        return merge(
            self.check_message_compliance(message),
            type_check,
            self.is_appropriate_time(),
            await self.check_rate_limits(phone_hash),
        )

    @staticmethod
    def get_compliance_guidelines() -> list[str]:
        return list(COMPLIANCE_GUIDELINES)
