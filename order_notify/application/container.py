"""Composition root: builds every notification service with its collaborators."""

from dataclasses import dataclass
from random import Random
from typing import Optional

import pytz
from apscheduler.schedulers.base import BaseScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_notify.application.services.compliance import ComplianceChecker
from order_notify.application.services.delivery_monitor import DeliveryMonitor
from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.message_variations import VariantSelector
from order_notify.application.services.notification_triggers import NotificationTriggerService
from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.application.services.phone_cipher import PhoneCipher
from order_notify.application.services.queue_manager import QueueConfig, QueueManager, Sleep
from order_notify.application.services.template_renderer import TemplateRenderer
from order_notify.config import Settings
from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.repositories.message_transport import MessageTransport
from order_notify.infrastructure.evolution_api import EvolutionAPIClient
from order_notify.infrastructure.repositories.error_log_repository import (
    SQLAlchemyAlertRepository,
    SQLAlchemyErrorLogRepository,
)
from order_notify.infrastructure.repositories.notification_repository import SQLAlchemyNotificationRepository
from order_notify.infrastructure.repositories.opt_out_repository import SQLAlchemyOptOutRepository
from order_notify.infrastructure.repositories.order_provider import SQLAlchemyOrderProvider
from order_notify.infrastructure.repositories.template_repository import SQLAlchemyTemplateRepository


@dataclass
class Services:
    settings: Settings
    cipher: PhoneCipher
    transport: MessageTransport
    error_logger: ErrorLogger
    renderer: TemplateRenderer
    compliance: ComplianceChecker
    opt_outs: OptOutRegistry
    queue: QueueManager
    monitor: DeliveryMonitor
    triggers: NotificationTriggerService


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    scheduler: Optional[BaseScheduler] = None,
    transport: Optional[MessageTransport] = None,
    clock: Clock = utcnow,
    sleep: Optional[Sleep] = None,
    rng: Optional[Random] = None,
) -> Services:
    """Wire SQLAlchemy repositories, the Evolution API client and the services."""
    tz = pytz.timezone(settings.TIMEZONE)

    notifications = SQLAlchemyNotificationRepository(session_factory)
    opt_out_repo = SQLAlchemyOptOutRepository(session_factory)
    error_repo = SQLAlchemyErrorLogRepository(session_factory)
    alert_repo = SQLAlchemyAlertRepository(session_factory)
    templates = SQLAlchemyTemplateRepository(session_factory)
    orders = SQLAlchemyOrderProvider(session_factory)

    cipher = PhoneCipher(settings.PHONE_ENCRYPTION_KEY or None)
    transport = transport or EvolutionAPIClient(settings)

    error_logger = ErrorLogger(
        error_repo,
        alert_repo,
        cipher,
        retention_days=settings.ERROR_LOG_RETENTION_DAYS,
        clock=clock,
    )
    renderer = TemplateRenderer(
        templates,
        business_name=settings.BUSINESS_NAME,
        tz=tz,
        selector=VariantSelector(rng),
        cache_ttl_seconds=settings.TEMPLATE_CACHE_TTL_SECONDS,
        clock=clock,
    )
    compliance = ComplianceChecker(
        notifications,
        tz,
        max_length=settings.COMPLIANCE_MAX_MESSAGE_LENGTH,
        recommended_length=settings.COMPLIANCE_RECOMMENDED_MESSAGE_LENGTH,
        per_customer_limit=settings.COMPLIANCE_PER_CUSTOMER_HOURLY_LIMIT,
        global_limit=settings.COMPLIANCE_GLOBAL_HOURLY_LIMIT,
        clock=clock,
    )
    opt_outs = OptOutRegistry(opt_out_repo, notifications, cipher, tz, clock=clock)

    queue_kwargs = {"sleep": sleep} if sleep is not None else {}
    queue = QueueManager(
        notifications,
        opt_outs,
        renderer,
        compliance,
        cipher,
        transport,
        error_logger,
        orders,
        tz,
        config=QueueConfig.from_settings(settings),
        scheduler=scheduler,
        clock=clock,
        **queue_kwargs,
    )
    monitor = DeliveryMonitor(
        notifications,
        alert_repo,
        error_logger,
        tz,
        failure_rate_threshold=settings.MONITOR_FAILURE_RATE_THRESHOLD,
        min_sample_size=settings.MONITOR_MIN_SAMPLE_SIZE,
        check_interval_seconds=settings.MONITOR_CHECK_INTERVAL_SECONDS,
        scheduler=scheduler,
        clock=clock,
    )
    triggers = NotificationTriggerService(queue, orders, notifications, error_logger, clock=clock)

    return Services(
        settings=settings,
        cipher=cipher,
        transport=transport,
        error_logger=error_logger,
        renderer=renderer,
        compliance=compliance,
        opt_outs=opt_outs,
        queue=queue,
        monitor=monitor,
        triggers=triggers,
    )
