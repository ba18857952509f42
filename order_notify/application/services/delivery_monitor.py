"""Delivery-rate statistics and threshold alerts."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import uuid4

import pytz
import structlog
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from order_notify.application.services.error_logger import ErrorLogger
from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.enums import AlertType, ErrorCategory, NotificationStatus, TimePeriod
from order_notify.domain.repositories.error_log_repository import AlertRepository
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.schemas.monitoring import (
    Alert,
    DeliveryRecord,
    DeliveryStats,
    DeliveryTrend,
    ErrorContext,
)
from order_notify.domain.schemas.notification import QueuedNotification

logger = structlog.get_logger(__name__)

MONITORING_JOB_ID = "delivery_monitoring"

PERIOD_WINDOWS = {
    TimePeriod.LAST_HOUR: timedelta(hours=1),
    TimePeriod.LAST_24_HOURS: timedelta(hours=24),
    TimePeriod.LAST_7_DAYS: timedelta(days=7),
    TimePeriod.LAST_30_DAYS: timedelta(days=30),
}

HIGH_PENDING_ABSOLUTE = 20
HIGH_PENDING_RATIO = 0.5
SLOW_DELIVERY_MS = 5 * 60 * 1000
ALERT_DEDUP_WINDOW = timedelta(hours=1)
RECENT_DELIVERIES_LIMIT = 20


def delivery_time_ms(n: QueuedNotification) -> Optional[float]:
    if n.status != NotificationStatus.SENT or n.sent_at is None or n.scheduled_at is None:
        return None
    return (n.sent_at - n.scheduled_at).total_seconds() * 1000


def compute_stats(notifications: Iterable[QueuedNotification]) -> DeliveryStats:
    """Totals, rates over sent+failed, and mean sent_at - scheduled_at."""
    rows = list(notifications)
    sent = sum(1 for n in rows if n.status == NotificationStatus.SENT)
    failed = sum(1 for n in rows if n.status == NotificationStatus.FAILED)
    pending = sum(1 for n in rows if n.status == NotificationStatus.PENDING)
    processed = sent + failed
    times = [t for t in (delivery_time_ms(n) for n in rows) if t is not None]

    return DeliveryStats(
        total_sent=sent,
        total_failed=failed,
        total_pending=pending,
        delivery_rate=sent / processed * 100 if processed else 0.0,
        failure_rate=failed / processed * 100 if processed else 0.0,
        average_delivery_time_ms=sum(times) / len(times) if times else 0.0,
        recent_deliveries=[
            DeliveryRecord(
                id=n.id,
                order_id=n.order_id,
                notification_type=n.notification_type,
                status=n.status,
                attempts=n.attempts,
                delivery_time_ms=delivery_time_ms(n),
                error_message=n.error_message,
                created_at=n.created_at,
                sent_at=n.sent_at,
            )
            for n in rows[:RECENT_DELIVERIES_LIMIT]
        ],
    )


class DeliveryMonitor:

    def __init__(
        self,
        notifications: NotificationRepository,
        alerts: AlertRepository,
        error_logger: ErrorLogger,
        tz: pytz.BaseTzInfo,
        failure_rate_threshold: float = 10.0,
        min_sample_size: int = 10,
        check_interval_seconds: int = 3600,
        scheduler: Optional[BaseScheduler] = None,
        clock: Clock = utcnow,
    ):
        self.notifications = notifications
        self.alerts = alerts
        self.error_logger = error_logger
        self.tz = tz
        self.failure_rate_threshold = failure_rate_threshold
        self.min_sample_size = min_sample_size
        self.check_interval_seconds = check_interval_seconds
        self.scheduler = scheduler
        self.clock = clock
        self._job = None

    async def _since(self, since: datetime) -> list[QueuedNotification]:
        return await self.notifications.list_since(since)

    async def get_delivery_stats(self, period: TimePeriod = TimePeriod.LAST_24_HOURS) -> DeliveryStats:
        since = self.clock() - PERIOD_WINDOWS[period]
        try:
            return compute_stats(await self._since(since))
        except Exception:
            logger.exception("delivery_stats_failed", period=period.value)
            return DeliveryStats()

    async def get_stats_by_type(self, period: TimePeriod = TimePeriod.LAST_24_HOURS) -> dict[str, DeliveryStats]:
        since = self.clock() - PERIOD_WINDOWS[period]
        try:
            rows = await self._since(since)
        except Exception:
            logger.exception("delivery_stats_by_type_failed", period=period.value)
            return {}

        grouped: dict[str, list[QueuedNotification]] = defaultdict(list)
        for n in rows:
            grouped[n.notification_type.value].append(n)
        return {t: compute_stats(items) for t, items in grouped.items()}

    async def get_delivery_trends(self, days: int = 7) -> list[DeliveryTrend]:
        """Sent/failed counts per local calendar day, oldest first."""
        since = self.clock() - timedelta(days=days)
        try:
            rows = await self._since(since)
        except Exception:
            logger.exception("delivery_trends_failed")
            return []

        by_day: dict[str, dict[str, int]] = defaultdict(lambda: {"sent": 0, "failed": 0})
        for n in rows:
            bucket = by_day[n.created_at.astimezone(self.tz).date().isoformat()]
            if n.status == NotificationStatus.SENT:
                bucket["sent"] += 1
            elif n.status == NotificationStatus.FAILED:
                bucket["failed"] += 1

        trends = []
        for day in sorted(by_day):
            sent, failed = by_day[day]["sent"], by_day[day]["failed"]
            trends.append(DeliveryTrend(
                date=day,
                sent=sent,
                failed=failed,
                delivery_rate=sent / (sent + failed) * 100 if sent + failed else 0.0,
            ))
        return trends

    async def check_and_alert(self) -> list[Alert]:
        """Evaluate last-hour delivery health. Returns the alerts raised."""
        raised: list[Alert] = []
        try:
            stats = await self.get_delivery_stats(TimePeriod.LAST_HOUR)
            processed = stats.total_processed
            if processed < self.min_sample_size:
                logger.debug("monitor_sample_too_small", processed=processed, required=self.min_sample_size)
                return raised

            metadata = stats.model_dump(mode="json", exclude={"recent_deliveries"})

            if stats.failure_rate > self.failure_rate_threshold:
                alert = await self._raise_once(
                    AlertType.HIGH_FAILURE_RATE,
                    ErrorCategory.MESSAGE_DELIVERY,
                    f"High WhatsApp failure rate detected: {stats.failure_rate:.1f}% "
                    f"({stats.total_failed}/{processed} messages failed)",
                    {"stats": metadata, "threshold": self.failure_rate_threshold},
                )
                if alert:
                    raised.append(alert)

            if stats.total_pending > HIGH_PENDING_ABSOLUTE and stats.total_pending > processed * HIGH_PENDING_RATIO:
                alert = await self._raise_once(
                    AlertType.HIGH_PENDING_COUNT,
                    ErrorCategory.CONNECTION,
                    f"High pending notification count: {stats.total_pending} messages waiting to be sent",
                    {"stats": metadata},
                )
                if alert:
                    raised.append(alert)

            if stats.average_delivery_time_ms > SLOW_DELIVERY_MS:
                minutes = stats.average_delivery_time_ms / 1000 / 60
                alert = await self._raise_once(
                    AlertType.SLOW_DELIVERY,
                    ErrorCategory.MESSAGE_DELIVERY,
                    f"Slow message delivery detected: average {minutes:.1f} minutes",
                    {"stats": metadata},
                )
                if alert:
                    raised.append(alert)
        except Exception as e:
            await self.error_logger.log_error(e, ErrorContext(operation="delivery_monitoring_check"))
        return raised

    async def _raise_once(
        self,
        alert_type: AlertType,
        category: ErrorCategory,
        message: str,
        metadata: dict,
    ) -> Optional[Alert]:
        now = self.clock()
        if await self.alerts.find_recent(alert_type, now - ALERT_DEDUP_WINDOW):
            logger.info("monitor_alert_suppressed", alert_type=alert_type.value)
            return None

        alert = Alert(
            id=str(uuid4()),
            alert_type=alert_type,
            category=category,
            message=message,
            metadata=metadata,
            created_at=now,
        )
        await self.alerts.add(alert)
        logger.warning("delivery_alert", alert_type=alert_type.value, detail=message)
        return alert

    async def get_unresolved_alerts(self) -> list[Alert]:
        try:
            return await self.alerts.list_unresolved()
        except Exception:
            logger.exception("unresolved_alerts_failed")
            return []

    async def resolve_alert(self, alert_id: str) -> bool:
        resolved = await self.alerts.resolve(alert_id, self.clock())
        if resolved:
            logger.info("alert_resolved", alert_id=alert_id)
        return resolved

    # -- scheduling -------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._job is not None

    def start_monitoring(self) -> bool:
        """Schedule the periodic check, running the first one right away."""
        if self.scheduler is None:
            raise RuntimeError("Delivery monitor has no scheduler")
        if self.is_monitoring:
            logger.warning("monitoring_already_started")
            return False

        self._job = self.scheduler.add_job(
            self.check_and_alert,
            trigger=IntervalTrigger(seconds=self.check_interval_seconds, timezone=self.tz),
            id=MONITORING_JOB_ID,
            name=f"Delivery Monitoring (every {self.check_interval_seconds}s)",
            next_run_time=datetime.now(self.tz),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("monitoring_started", interval_seconds=self.check_interval_seconds)
        return True

    def stop_monitoring(self) -> bool:
        if not self.is_monitoring:
            return False
        self._job.remove()
        self._job = None
        logger.info("monitoring_stopped")
        return True
