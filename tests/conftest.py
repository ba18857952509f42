"""Shared fixtures: an in-memory service stack with a pinned clock."""

import random
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from order_notify.application.services.compliance import ComplianceChecker
from order_notify.application.services.delivery_monitor import DeliveryMonitor
from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.message_variations import VariantSelector
from order_notify.application.services.notification_triggers import NotificationTriggerService
from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.application.services.phone_cipher import PhoneCipher, generate_key
from order_notify.application.services.queue_manager import QueueConfig, QueueManager
from order_notify.application.services.template_renderer import TemplateRenderer
from tests.fakes import (
    FakeClock,
    FakeTransport,
    InMemoryAlertRepository,
    InMemoryErrorLogRepository,
    InMemoryNotificationRepository,
    InMemoryOptOutRepository,
    InMemoryOrderProvider,
    InMemoryTemplateRepository,
    TZ,
    make_order,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cipher():
    return PhoneCipher(generate_key())


@pytest.fixture
def order():
    return make_order()


@pytest.fixture
def stack(clock, cipher, order):
    """Every service wired to in-memory fakes, auto-processing on enqueue disabled."""
    notifications = InMemoryNotificationRepository()
    opt_out_repo = InMemoryOptOutRepository()
    errors = InMemoryErrorLogRepository()
    alerts = InMemoryAlertRepository()
    templates = InMemoryTemplateRepository()
    orders = InMemoryOrderProvider([order])
    transport = FakeTransport()
    sleep = AsyncMock()

    error_logger = ErrorLogger(errors, alerts, cipher, clock=clock)
    renderer = TemplateRenderer(
        templates, business_name="Coco Loko Açaiteria", tz=TZ,
        selector=VariantSelector(random.Random(7)), clock=clock,
    )
    compliance = ComplianceChecker(notifications, TZ, clock=clock)
    registry = OptOutRegistry(opt_out_repo, notifications, cipher, TZ, clock=clock)
    queue = QueueManager(
        notifications, registry, renderer, compliance, cipher, transport, error_logger, orders, TZ,
        config=QueueConfig(process_on_enqueue=False),
        clock=clock,
        sleep=sleep,
    )
    monitor = DeliveryMonitor(notifications, alerts, error_logger, TZ, clock=clock)
    triggers = NotificationTriggerService(queue, orders, notifications, error_logger, clock=clock)

    return SimpleNamespace(
        clock=clock,
        cipher=cipher,
        notifications=notifications,
        opt_out_repo=opt_out_repo,
        errors=errors,
        alerts=alerts,
        templates=templates,
        orders=orders,
        transport=transport,
        sleep=sleep,
        error_logger=error_logger,
        renderer=renderer,
        compliance=compliance,
        registry=registry,
        queue=queue,
        monitor=monitor,
        triggers=triggers,
    )
