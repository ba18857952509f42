"""Notification queue API routes: stats, order history, manual enqueue and processing."""

from fastapi import APIRouter, Depends, status

from order_notify.application.services.queue_manager import QueueManager
from order_notify.core.exceptions import BusinessRuleViolationException, EntityNotFoundException
from order_notify.domain.outcomes import Enqueued, describe_outcome
from order_notify.domain.schemas.notification import (
    NotificationRequest,
    ProcessResult,
    QueuedNotification,
    QueueStats,
)
from order_notify.interfaces.deps import get_queue_manager

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/stats", response_model=QueueStats)
async def queue_stats(queue: QueueManager = Depends(get_queue_manager)):
    return await queue.get_queue_stats()


@router.get("/orders/{order_id}", response_model=list[QueuedNotification])
async def order_notifications(order_id: str, queue: QueueManager = Depends(get_queue_manager)):
    """All notifications for an order, newest first, phones decrypted."""
    return await queue.get_order_notifications(order_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def enqueue_notification(
    body: NotificationRequest,
    queue: QueueManager = Depends(get_queue_manager),
):
    """Queue a notification. Rejections come back as 422 with the outcome kind and reasons."""
    outcome = await queue.enqueue(body)
    described = describe_outcome(outcome)
    if not isinstance(outcome, Enqueued):
        raise BusinessRuleViolationException("Notification was not queued", details=described)
    return described


@router.post("/process", response_model=list[ProcessResult])
async def process_now(queue: QueueManager = Depends(get_queue_manager)):
    """Run one processing pass immediately."""
    return await queue.process_pending_notifications()


@router.post("/retry-failed")
async def retry_failed(queue: QueueManager = Depends(get_queue_manager)):
    count = await queue.retry_failed_notifications()
    return {"reset": count}


@router.post("/{notification_id}/cancel")
async def cancel_notification(notification_id: str, queue: QueueManager = Depends(get_queue_manager)):
    if not await queue.cancel_notification(notification_id):
        raise EntityNotFoundException(
            "Pending notification not found",
            details={"notification_id": notification_id},
        )
    return {"notification_id": notification_id, "status": "cancelled"}
