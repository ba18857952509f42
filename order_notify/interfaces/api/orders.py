"""Order-lifecycle event routes, called by the ordering system."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from order_notify.application.container import Services
from order_notify.application.services.notification_triggers import NotificationTriggerService
from order_notify.domain.outcomes import describe_outcome
from order_notify.interfaces.deps import get_services, get_trigger_service

router = APIRouter(prefix="/api/orders", tags=["Order Events"])


class OrderCreatedEvent(BaseModel):
    base_url: Optional[str] = None


class StatusChangeEvent(BaseModel):
    new_status: str
    old_status: Optional[str] = None


def _response(order_id: str, outcome) -> dict:
    if outcome is None:
        return {"order_id": order_id, "status": "skipped"}
    return {"order_id": order_id, **describe_outcome(outcome)}


@router.post("/{order_id}/events/created")
async def order_created(
    order_id: str,
    body: Optional[OrderCreatedEvent] = None,
    triggers: NotificationTriggerService = Depends(get_trigger_service),
    services: Services = Depends(get_services),
):
    """Queue the order-created message with status and payment links."""
    base_url = (body.base_url if body else None) or services.settings.APP_BASE_URL
    outcome = await triggers.on_order_created_with_links(order_id, base_url)
    return _response(order_id, outcome)


@router.post("/{order_id}/events/status")
async def order_status_changed(
    order_id: str,
    body: StatusChangeEvent,
    triggers: NotificationTriggerService = Depends(get_trigger_service),
):
    """Trigger failures never fail this call; a skipped or ignored event reports ``skipped``."""
    outcome = await triggers.on_order_status_change(order_id, body.new_status, body.old_status)
    return _response(order_id, outcome)
