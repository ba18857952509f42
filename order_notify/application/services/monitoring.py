"""Aggregate health view over delivery, errors and open alerts."""

from datetime import timedelta

from order_notify.application.services.delivery_monitor import DeliveryMonitor
from order_notify.application.services.error_logger import ERROR_RATE_ALERT_THRESHOLD, ErrorLogger
from order_notify.domain.enums import AlertType, HealthStatus, TimePeriod
from order_notify.domain.schemas.monitoring import SystemHealth


async def get_system_health(monitor: DeliveryMonitor, error_logger: ErrorLogger) -> SystemHealth:
    delivery = await monitor.get_delivery_stats(TimePeriod.LAST_HOUR)
    errors = await error_logger.get_error_stats(monitor.clock() - timedelta(hours=1))
    alerts = await monitor.get_unresolved_alerts()

    if any(a.alert_type == AlertType.CRITICAL_ERROR for a in alerts):
        status = HealthStatus.CRITICAL
    elif (
        alerts
        or delivery.failure_rate > monitor.failure_rate_threshold
        or errors.error_rate > ERROR_RATE_ALERT_THRESHOLD
    ):
        status = HealthStatus.WARNING
    else:
        status = HealthStatus.HEALTHY

    return SystemHealth(delivery=delivery, errors=errors, alerts=alerts, status=status)
