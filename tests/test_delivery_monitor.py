"""
Delivery monitor and system health.
- Stats over a window: rates over sent+failed, mean delivery time
- check_and_alert: minimum sample, thresholds, one alert per kind per hour
- Monitoring job start/stop is idempotent
"""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from order_notify.application.services.delivery_monitor import MONITORING_JOB_ID, compute_stats
from order_notify.application.services.monitoring import get_system_health
from order_notify.domain.enums import AlertType, HealthStatus, NotificationStatus, NotificationType, TimePeriod
from order_notify.domain.schemas.monitoring import ErrorContext
from order_notify.domain.schemas.notification import QueuedNotification


async def seed(stack, status, count, delivery_seconds=2, notification_type=NotificationType.READY, age=timedelta(minutes=10)):
    now = stack.clock()
    for _ in range(count):
        i = len(stack.notifications.rows)
        scheduled = now - age
        await stack.notifications.add(QueuedNotification(
            id=f"n-{i}",
            order_id=f"order-{i}",
            customer_phone="x",
            notification_type=notification_type,
            status=status,
            attempts=1,
            scheduled_at=scheduled,
            sent_at=scheduled + timedelta(seconds=delivery_seconds) if status == NotificationStatus.SENT else None,
            created_at=scheduled,
        ))


def test_compute_stats_on_empty_input():
    stats = compute_stats([])
    assert stats.delivery_rate == 0.0
    assert stats.failure_rate == 0.0
    assert stats.average_delivery_time_ms == 0.0


@pytest.mark.asyncio
async def test_delivery_stats(stack):
    await seed(stack, NotificationStatus.SENT, 3, delivery_seconds=4)
    await seed(stack, NotificationStatus.FAILED, 1)
    await seed(stack, NotificationStatus.PENDING, 2)
    await seed(stack, NotificationStatus.SENT, 5, age=timedelta(days=2))

    stats = await stack.monitor.get_delivery_stats(TimePeriod.LAST_24_HOURS)
    assert (stats.total_sent, stats.total_failed, stats.total_pending) == (3, 1, 2)
    assert stats.delivery_rate == pytest.approx(75.0)
    assert stats.failure_rate == pytest.approx(25.0)
    assert stats.average_delivery_time_ms == pytest.approx(4000.0)
    assert len(stats.recent_deliveries) == 6

    week = await stack.monitor.get_delivery_stats(TimePeriod.LAST_7_DAYS)
    assert week.total_sent == 8


@pytest.mark.asyncio
async def test_stats_by_type_and_trends(stack):
    await seed(stack, NotificationStatus.SENT, 2, notification_type=NotificationType.READY)
    await seed(stack, NotificationStatus.FAILED, 1, notification_type=NotificationType.PREPARING)
    await seed(stack, NotificationStatus.SENT, 1, age=timedelta(days=1, minutes=1))

    by_type = await stack.monitor.get_stats_by_type()
    assert by_type["ready"].total_sent == 2
    assert by_type["preparing"].total_failed == 1

    trends = await stack.monitor.get_delivery_trends(days=7)
    assert [t.date for t in trends] == ["2026-03-09", "2026-03-10"]
    assert trends[-1].sent == 2 and trends[-1].failed == 1
    assert trends[-1].delivery_rate == pytest.approx(200 / 3)


@pytest.mark.asyncio
async def test_window_start_is_inclusive(stack):
    await seed(stack, NotificationStatus.SENT, 1, age=timedelta(days=1))
    await seed(stack, NotificationStatus.SENT, 1, age=timedelta(days=1, seconds=1))

    stats = await stack.monitor.get_delivery_stats(TimePeriod.LAST_24_HOURS)
    assert stats.total_sent == 1
    assert (await stack.monitor.get_stats_by_type())["ready"].total_sent == 1


@pytest.mark.asyncio
async def test_small_sample_is_skipped(stack):
    await seed(stack, NotificationStatus.FAILED, 9)
    assert await stack.monitor.check_and_alert() == []
    assert stack.alerts.alerts == []


@pytest.mark.asyncio
async def test_high_failure_rate_alert_is_deduplicated(stack):
    await seed(stack, NotificationStatus.SENT, 8)
    await seed(stack, NotificationStatus.FAILED, 2)

    raised = await stack.monitor.check_and_alert()
    assert [a.alert_type for a in raised] == [AlertType.HIGH_FAILURE_RATE]
    assert "20.0%" in raised[0].message

    assert await stack.monitor.check_and_alert() == []

    stack.clock.advance(minutes=61)
    await seed(stack, NotificationStatus.SENT, 8)
    await seed(stack, NotificationStatus.FAILED, 2)
    assert len(await stack.monitor.check_and_alert()) == 1


@pytest.mark.asyncio
async def test_pending_and_slow_delivery_alerts(stack):
    await seed(stack, NotificationStatus.SENT, 10, delivery_seconds=6 * 60)
    await seed(stack, NotificationStatus.PENDING, 21)

    raised = await stack.monitor.check_and_alert()
    assert {a.alert_type for a in raised} == {AlertType.HIGH_PENDING_COUNT, AlertType.SLOW_DELIVERY}


@pytest.mark.asyncio
async def test_resolve_alert(stack):
    await seed(stack, NotificationStatus.FAILED, 10)
    alert = (await stack.monitor.check_and_alert())[0]

    assert await stack.monitor.resolve_alert(alert.id)
    assert not await stack.monitor.resolve_alert(alert.id)
    assert await stack.monitor.get_unresolved_alerts() == []


def test_monitoring_job_start_stop(stack):
    scheduler = MagicMock()
    stack.monitor.scheduler = scheduler

    assert stack.monitor.start_monitoring()
    assert not stack.monitor.start_monitoring()
    assert scheduler.add_job.call_count == 1
    kwargs = scheduler.add_job.call_args.kwargs
    assert kwargs["id"] == MONITORING_JOB_ID
    assert kwargs["next_run_time"] is not None
    assert stack.monitor.is_monitoring

    assert stack.monitor.stop_monitoring()
    assert not stack.monitor.stop_monitoring()
    scheduler.add_job.return_value.remove.assert_called_once()


@pytest.mark.asyncio
async def test_system_health_levels(stack):
    health = await get_system_health(stack.monitor, stack.error_logger)
    assert health.status == HealthStatus.HEALTHY

    await seed(stack, NotificationStatus.FAILED, 10)
    await stack.monitor.check_and_alert()
    health = await get_system_health(stack.monitor, stack.error_logger)
    assert health.status == HealthStatus.WARNING

    await stack.error_logger.log_error("Evolution API not configured", ErrorContext(operation="send"))
    health = await get_system_health(stack.monitor, stack.error_logger)
    assert health.status == HealthStatus.CRITICAL
    assert health.errors.total_errors == 1
