"""Notification queue: enqueue with policy checks, and the processing loop.

Processing model:
- single-flight per process (an ``asyncio.Lock`` checked without waiting)
- due rows are fetched FIFO by ``scheduled_at`` and sent in groups of
  ``max_concurrent``, with a pause between groups
- retryable failures are rescheduled with capped exponential backoff;
  anything else, or running out of attempts, marks the row ``failed``

There is no cross-process claim on fetched rows, so two instances
processing the same table can send a notification twice.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional
from uuid import uuid4

import pytz
import structlog
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from order_notify.application.services.compliance import ComplianceChecker
from order_notify.application.services.error_classifier import error_text, is_retryable_error
from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.application.services.phone_cipher import PhoneCipher
from order_notify.application.services.phone_validator import mask_phone, validate_phone_number
from order_notify.application.services.template_renderer import TemplateRenderer
from order_notify.config import Settings
from order_notify.core.exceptions import TemplateRenderError
from order_notify.core.timeutils import Clock, local_day_start, utcnow
from order_notify.domain.enums import NotificationStatus, NotificationType
from order_notify.domain.outcomes import (
    ComplianceViolation,
    Enqueued,
    EnqueueOutcome,
    InvalidPhone,
    OptedOut,
    RenderFailure,
)
from order_notify.domain.repositories.message_transport import MessageTransport
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.repositories.order_provider import OrderProvider
from order_notify.domain.schemas.monitoring import ErrorContext
from order_notify.domain.schemas.notification import (
    NotificationRequest,
    OrderData,
    ProcessResult,
    QueuedNotification,
    QueueStats,
)

logger = structlog.get_logger(__name__)

PROCESSING_JOB_ID = "queue_processing"

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class QueueConfig:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    batch_size: int = 10
    processing_interval_seconds: int = 5
    max_concurrent: int = 5
    inter_batch_delay_ms: int = 1000
    process_on_enqueue: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueueConfig":
        return cls(
            max_attempts=settings.QUEUE_MAX_ATTEMPTS,
            base_delay_ms=settings.QUEUE_BASE_DELAY_MS,
            max_delay_ms=settings.QUEUE_MAX_DELAY_MS,
            backoff_multiplier=settings.QUEUE_BACKOFF_MULTIPLIER,
            batch_size=settings.QUEUE_BATCH_SIZE,
            processing_interval_seconds=settings.QUEUE_PROCESSING_INTERVAL_SECONDS,
            max_concurrent=settings.QUEUE_MAX_CONCURRENT,
            inter_batch_delay_ms=settings.QUEUE_INTER_BATCH_DELAY_MS,
            process_on_enqueue=settings.QUEUE_PROCESS_ON_ENQUEUE,
        )


def compute_retry_delay(attempt: int, config: QueueConfig) -> int:
    """Delay in ms before retrying after the given 1-indexed attempt."""
    delay = config.base_delay_ms * config.backoff_multiplier ** (attempt - 1)
    return int(min(delay, config.max_delay_ms))


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), max(size, 1))]


class QueueManager:

    def __init__(
        self,
        notifications: NotificationRepository,
        opt_outs: OptOutRegistry,
        renderer: TemplateRenderer,
        compliance: ComplianceChecker,
        cipher: PhoneCipher,
        transport: MessageTransport,
        error_logger: ErrorLogger,
        orders: OrderProvider,
        tz: pytz.BaseTzInfo,
        config: Optional[QueueConfig] = None,
        scheduler: Optional[BaseScheduler] = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ):
        self.notifications = notifications
        self.opt_outs = opt_outs
        self.renderer = renderer
        self.compliance = compliance
        self.cipher = cipher
        self.transport = transport
        self.error_logger = error_logger
        self.orders = orders
        self.tz = tz
        self.config = config or QueueConfig()
        self.scheduler = scheduler
        self.clock = clock
        self.sleep = sleep

        self._lock = asyncio.Lock()
        self._job = None
        self._background: set[asyncio.Task] = set()

    # -- enqueue ----------------------------------------------------------

    async def enqueue(self, request: NotificationRequest) -> EnqueueOutcome:
        """Validate, render, check and persist a notification.

        Expected rejections come back as outcome values. Storage errors
        propagate.
        """
        validation = validate_phone_number(request.customer_phone)
        if not validation.is_valid:
            logger.info("enqueue_invalid_phone", order_id=request.order_id, reason=validation.error)
            return InvalidPhone(validation.error or "Invalid phone number")
        phone = validation.formatted_number

        if await self.opt_outs.is_opted_out(phone):
            logger.info("enqueue_opted_out", order_id=request.order_id, phone=mask_phone(phone))
            return OptedOut()

        try:
            order = request.order_details
            if order is None and not self._is_verbatim(request):
                order = await self._load_order(request.order_id)
            message = await self.renderer.render(request.notification_type, order, request.custom_message)
        except TemplateRenderError as e:
            logger.warning("enqueue_render_failed", order_id=request.order_id, reason=e.message)
            return RenderFailure(e.message)

        phone_hash = self.cipher.fingerprint(phone)
        result = await self.compliance.check_full_compliance(message, request.notification_type, phone_hash)
        if result.warnings:
            logger.warning("compliance_warnings", order_id=request.order_id, warnings=result.warnings)
        if not result.is_compliant:
            logger.warning("enqueue_compliance_violation", order_id=request.order_id, violations=result.violations)
            return ComplianceViolation(list(result.violations))

        now = self.clock()
        notification = QueuedNotification(
            id=str(uuid4()),
            order_id=request.order_id,
            customer_phone=self.cipher.encrypt_safe(phone),
            customer_phone_hash=phone_hash,
            notification_type=request.notification_type,
            message_content=message,
            status=NotificationStatus.PENDING,
            attempts=0,
            scheduled_at=now,
            dedupe_key=f"{request.order_id}:{request.notification_type.value}:{now.astimezone(self.tz):%Y-%m-%d}",
            created_at=now,
        )
        await self.notifications.add(notification)
        logger.info(
            "notification_enqueued",
            notification_id=notification.id,
            order_id=request.order_id,
            notification_type=request.notification_type.value,
        )

        if self.config.process_on_enqueue:
            self._schedule_immediate_pass()
        return Enqueued(notification.id)

    @staticmethod
    def _is_verbatim(request: NotificationRequest) -> bool:
        # Literal text for a non-custom type is sent as-is, no order needed
        return bool(request.custom_message) and request.notification_type != NotificationType.CUSTOM

    async def _load_order(self, order_id: str) -> OrderData:
        try:
            order = await self.orders.get_order(order_id)
        except Exception as e:
            raise TemplateRenderError(f"Order lookup failed for {order_id}: {e}") from e
        if order is None:
            raise TemplateRenderError(f"Order {order_id} not found")
        return order

    def _schedule_immediate_pass(self) -> None:
        task = asyncio.create_task(self._safe_process())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _safe_process(self) -> None:
        try:
            await self.process_pending_notifications()
        except Exception:
            logger.exception("immediate_processing_failed")

    async def wait_for_background(self) -> None:
        """Wait for immediate passes started by ``enqueue``."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- processing -------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._lock.locked()

    async def process_pending_notifications(self) -> list[ProcessResult]:
        """Run one processing pass. A pass already in flight makes this a no-op."""
        if self._lock.locked():
            logger.debug("processing_pass_skipped", reason="already running")
            return []

        async with self._lock:
            try:
                due = await self.notifications.fetch_due(
                    self.clock(), self.config.max_attempts, self.config.batch_size
                )
            except Exception:
                logger.exception("pending_fetch_failed")
                return []

            if not due:
                return []

            logger.info("processing_pass_started", count=len(due))
            results: list[ProcessResult] = []
            groups = chunked(due, self.config.max_concurrent)
            for index, group in enumerate(groups):
                outcomes = await asyncio.gather(
                    *(self._process_one(n) for n in group), return_exceptions=True
                )
                for notification, outcome in zip(group, outcomes):
                    if isinstance(outcome, Exception):
                        logger.error("notification_processing_crashed", notification_id=notification.id, error=str(outcome))
                        results.append(ProcessResult(notification_id=notification.id, success=False, error=str(outcome)))
                    else:
                        results.append(outcome)

                if index < len(groups) - 1:
                    await self.sleep(self.config.inter_batch_delay_ms / 1000)

            sent = sum(1 for r in results if r.success)
            logger.info("processing_pass_finished", sent=sent, failed=len(results) - sent)
            return results

    async def _process_one(self, notification: QueuedNotification) -> ProcessResult:
        attempts = notification.attempts + 1
        await self.notifications.update(notification.id, attempts=attempts)

        number: Optional[str] = None
        try:
            number = self.cipher.decrypt_safe(notification.customer_phone)
            text = notification.message_content
            if not text.strip():
                text = await self._rerender(notification)
                await self.notifications.update(notification.id, message_content=text)
            response = await self.transport.send_text(number, text)
        except Exception as e:
            return await self._handle_failure(notification, attempts, e, number)

        await self.notifications.update(
            notification.id,
            status=NotificationStatus.SENT,
            sent_at=self.clock(),
            whatsapp_message_id=response.get("messageId"),
            error_message=None,
        )
        logger.info("notification_sent", notification_id=notification.id, attempts=attempts)
        return ProcessResult(notification_id=notification.id, success=True)

    async def _rerender(self, notification: QueuedNotification) -> str:
        order = await self._load_order(notification.order_id)
        return await self.renderer.render(notification.notification_type, order)

    async def _handle_failure(
        self,
        notification: QueuedNotification,
        attempts: int,
        error: Exception,
        number: Optional[str],
    ) -> ProcessResult:
        message = error_text(error)
        await self.error_logger.log_error(error, ErrorContext(
            operation="process_notification",
            order_id=notification.order_id,
            customer_phone=number,
            notification_id=notification.id,
            additional_data={
                "attempts": attempts,
                "notification_type": notification.notification_type.value,
            },
        ))

        if is_retryable_error(error) and attempts < self.config.max_attempts:
            delay_ms = compute_retry_delay(attempts, self.config)
            await self.notifications.update(
                notification.id,
                scheduled_at=self.clock() + timedelta(milliseconds=delay_ms),
                error_message=message,
            )
            logger.warning(
                "notification_retry_scheduled",
                notification_id=notification.id,
                attempts=attempts,
                delay_ms=delay_ms,
            )
        else:
            await self.notifications.update(
                notification.id, status=NotificationStatus.FAILED, error_message=message
            )
            logger.error("notification_failed", notification_id=notification.id, attempts=attempts, error=message)

        return ProcessResult(notification_id=notification.id, success=False, error=message)

    # -- auxiliary operations ---------------------------------------------

    async def retry_failed_notifications(self) -> int:
        """Reset retryable failed rows to pending and run a pass. Returns the reset count."""
        count = await self.notifications.reset_failed(self.config.max_attempts, self.clock())
        logger.info("failed_notifications_reset", count=count)
        if count:
            await self.process_pending_notifications()
        return count

    async def cancel_notification(self, notification_id: str) -> bool:
        cancelled = await self.notifications.cancel_if_pending(notification_id)
        if cancelled:
            logger.info("notification_cancelled", notification_id=notification_id)
        return cancelled

    async def get_order_notifications(self, order_id: str) -> list[QueuedNotification]:
        rows = await self.notifications.list_for_order(order_id)
        return [
            n.model_copy(update={"customer_phone": self.cipher.decrypt_safe(n.customer_phone)})
            for n in rows
        ]

    async def get_queue_stats(self) -> QueueStats:
        try:
            counts = await self.notifications.count_by_status()
            day_start = local_day_start(self.clock(), self.tz)
            total_today = await self.notifications.count_created_since(day_start)
            sent_today = await self.notifications.count_created_since(day_start, NotificationStatus.SENT)
        except Exception:
            logger.exception("queue_stats_failed")
            return QueueStats()

        rate = sent_today / total_today * 100 if total_today else 0.0
        return QueueStats(
            pending=counts.get(NotificationStatus.PENDING.value, 0),
            sent=counts.get(NotificationStatus.SENT.value, 0),
            failed=counts.get(NotificationStatus.FAILED.value, 0),
            cancelled=counts.get(NotificationStatus.CANCELLED.value, 0),
            total_today=total_today,
            delivery_rate=max(0.0, min(rate, 100.0)),
        )

    # -- scheduling -------------------------------------------------------

    @property
    def is_auto_processing(self) -> bool:
        return self._job is not None

    def start_auto_processing(self) -> bool:
        """Add the interval processing job. Starting twice warns and does nothing."""
        if self.scheduler is None:
            raise RuntimeError("Queue manager has no scheduler")
        if self._job is not None:
            logger.warning("auto_processing_already_started")
            return False

        interval = self.config.processing_interval_seconds
        self._job = self.scheduler.add_job(
            self.process_pending_notifications,
            trigger=IntervalTrigger(seconds=interval, timezone=self.tz),
            id=PROCESSING_JOB_ID,
            name=f"Notification Queue (every {interval}s)",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("auto_processing_started", interval_seconds=interval)
        return True

    def stop_auto_processing(self) -> bool:
        """Remove the processing job. In-flight sends are not interrupted."""
        if self._job is None:
            return False
        self._job.remove()
        self._job = None
        logger.info("auto_processing_stopped")
        return True
