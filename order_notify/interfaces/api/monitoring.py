"""Monitoring API routes: delivery stats, errors, alerts and health."""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query, Request

from order_notify.application.container import Services
from order_notify.application.services.delivery_monitor import DeliveryMonitor
from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.monitoring import get_system_health
from order_notify.core.exceptions import EntityNotFoundException
from order_notify.domain.enums import TimePeriod
from order_notify.domain.schemas.monitoring import (
    Alert,
    DeliveryStats,
    DeliveryTrend,
    ErrorLogEntry,
    ErrorStats,
    SystemHealth,
)
from order_notify.infrastructure.evolution_api import EvolutionAPIClient
from order_notify.interfaces.deps import get_delivery_monitor, get_error_logger, get_services
from order_notify.scheduler.jobs import scheduler_status

router = APIRouter(prefix="/api/monitoring", tags=["Monitoring"])


@router.get("/delivery", response_model=DeliveryStats)
async def delivery_stats(
    period: TimePeriod = Query(TimePeriod.LAST_24_HOURS),
    monitor: DeliveryMonitor = Depends(get_delivery_monitor),
):
    return await monitor.get_delivery_stats(period)


@router.get("/delivery/by-type", response_model=dict[str, DeliveryStats])
async def delivery_stats_by_type(
    period: TimePeriod = Query(TimePeriod.LAST_24_HOURS),
    monitor: DeliveryMonitor = Depends(get_delivery_monitor),
):
    return await monitor.get_stats_by_type(period)


@router.get("/delivery/trends", response_model=list[DeliveryTrend])
async def delivery_trends(
    days: int = Query(7, ge=1, le=90),
    monitor: DeliveryMonitor = Depends(get_delivery_monitor),
):
    return await monitor.get_delivery_trends(days)


@router.get("/errors", response_model=ErrorStats)
async def error_stats(
    hours: int = Query(24, ge=1, le=24 * 30),
    error_logger: ErrorLogger = Depends(get_error_logger),
):
    return await error_logger.get_error_stats(error_logger.clock() - timedelta(hours=hours))


@router.get("/errors/orders/{order_id}", response_model=list[ErrorLogEntry])
async def order_errors(order_id: str, error_logger: ErrorLogger = Depends(get_error_logger)):
    return await error_logger.get_order_errors(order_id)


@router.get("/alerts", response_model=list[Alert])
async def unresolved_alerts(monitor: DeliveryMonitor = Depends(get_delivery_monitor)):
    return await monitor.get_unresolved_alerts()


@router.post("/alerts/{alert_id}/resolve")
async def resolve_alert(alert_id: str, monitor: DeliveryMonitor = Depends(get_delivery_monitor)):
    if not await monitor.resolve_alert(alert_id):
        raise EntityNotFoundException("Unresolved alert not found", details={"alert_id": alert_id})
    return {"alert_id": alert_id, "is_resolved": True}


@router.post("/check")
async def run_check(monitor: DeliveryMonitor = Depends(get_delivery_monitor)):
    """Run the delivery health check now."""
    alerts = await monitor.check_and_alert()
    return {"alerts_raised": [a.model_dump(mode="json") for a in alerts]}


@router.get("/health", response_model=SystemHealth)
async def system_health(services: Services = Depends(get_services)):
    return await get_system_health(services.monitor, services.error_logger)


@router.get("/scheduler-status")
def scheduler_state(request: Request):
    return scheduler_status(request.app.state.scheduler)


@router.get("/whatsapp-status")
async def whatsapp_status(services: Services = Depends(get_services)):
    """Connection state of the Evolution API instance."""
    if not isinstance(services.transport, EvolutionAPIClient):
        return {"state": "unknown", "configured": False}
    state = await services.transport.check_instance_status()
    return {"configured": services.transport.is_configured, **state}
