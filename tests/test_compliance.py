"""
Compliance checks.
- Content: empty and over-length messages are violations; style issues are warnings
- Time of day outside 08:00-22:00 local is only a warning
- Rolling-hour rate limits: violation at the limit, warning at 80%
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from order_notify.application.services.compliance import ComplianceChecker
from order_notify.domain.enums import NotificationType
from order_notify.domain.schemas.notification import QueuedNotification
from tests.fakes import TZ, FakeClock, InMemoryNotificationRepository


def make_checker(notifications=None, clock=None, **kwargs):
    return ComplianceChecker(
        notifications or InMemoryNotificationRepository(), TZ, clock=clock or FakeClock(), **kwargs
    )


async def seed(repo, clock, phone_hash, count, start=0):
    for i in range(start, start + count):
        await repo.add(QueuedNotification(
            id=f"n-{phone_hash}-{i}",
            order_id=f"order-{i}",
            customer_phone="x",
            customer_phone_hash=phone_hash,
            notification_type=NotificationType.READY,
            message_content="ok",
            scheduled_at=clock.now,
            created_at=clock.now - timedelta(minutes=10),
        ))


def test_empty_message_is_violation():
    result = make_checker().check_message_compliance("   ")
    assert not result.is_compliant
    assert "Message cannot be empty" in result.violations


def test_length_boundaries():
    checker = make_checker()

    at_limit = checker.check_message_compliance("a" * 4096)
    assert at_limit.is_compliant
    assert any("longer than recommended" in w for w in at_limit.warnings)

    over = checker.check_message_compliance("a" * 4097)
    assert not over.is_compliant
    assert "Message exceeds maximum length (4097/4096 characters)" in over.violations

    short = checker.check_message_compliance("a" * 1000)
    assert short.is_compliant and short.warnings == []


def test_style_warnings():
    checker = make_checker()

    caps = checker.check_message_compliance("SEU PEDIDO ESTA PRONTO AGORA")
    assert caps.is_compliant
    assert any("capitalization" in w for w in caps.warnings)

    punct = checker.check_message_compliance("Pronto!! Venha?? Já!!")
    assert any("punctuation" in w for w in punct.warnings)

    urls = checker.check_message_compliance(" ".join(f"https://x.io/{i}" for i in range(4)))
    assert any("multiple URLs" in w for w in urls.warnings)

    words = checker.check_message_compliance("This is not spam")
    assert words.is_compliant
    assert any("spam" in w for w in words.warnings)


def test_type_allow_list():
    for t in NotificationType:
        assert ComplianceChecker.is_notification_type_allowed(t)
    assert not ComplianceChecker.is_notification_type_allowed("promotion")


@pytest.mark.parametrize("utc_hour,warns", [(18, False), (2, True), (10, True), (11, False)])
def test_business_hours_warning(utc_hour, warns):
    # São Paulo is UTC-3: 18h UTC = 15h local, 02h = 23h, 10h = 07h, 11h = 08h
    now = datetime(2026, 3, 10, utc_hour, 0, tzinfo=timezone.utc)
    result = make_checker().is_appropriate_time(now)
    assert result.is_compliant
    assert bool(result.warnings) is warns


@pytest.mark.asyncio
async def test_customer_rate_limit_violation_at_limit():
    clock = FakeClock()
    repo = InMemoryNotificationRepository()
    await seed(repo, clock, "hash-a", 10)

    result = await make_checker(repo, clock).check_rate_limits("hash-a")
    assert not result.is_compliant
    assert "Rate limit exceeded for customer (10/10 per hour)" in result.violations


@pytest.mark.asyncio
async def test_customer_rate_limit_warning_at_eighty_percent():
    clock = FakeClock()
    repo = InMemoryNotificationRepository()
    await seed(repo, clock, "hash-a", 8)

    result = await make_checker(repo, clock).check_rate_limits("hash-a")
    assert result.is_compliant
    assert any("Approaching rate limit for customer" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_rows_older_than_an_hour_do_not_count():
    clock = FakeClock()
    repo = InMemoryNotificationRepository()
    await seed(repo, clock, "hash-a", 10)
    clock.advance(hours=1)

    result = await make_checker(repo, clock).check_rate_limits("hash-a")
    assert result.is_compliant and result.warnings == []


@pytest.mark.asyncio
async def test_global_rate_limit():
    clock = FakeClock()
    repo = InMemoryNotificationRepository()
    await seed(repo, clock, "hash-a", 3)
    await seed(repo, clock, "hash-b", 2, start=3)

    result = await make_checker(repo, clock, global_limit=5).check_rate_limits("hash-c")
    assert "Total rate limit exceeded (5/5 per hour)" in result.violations


@pytest.mark.asyncio
async def test_rate_limit_lookup_failure_is_a_warning():
    repo = InMemoryNotificationRepository()
    repo.count_for_phone_since = AsyncMock(side_effect=RuntimeError("db down"))

    result = await make_checker(repo).check_rate_limits("hash-a")
    assert result.is_compliant
    assert result.warnings == ["Unable to verify rate limits"]


@pytest.mark.asyncio
async def test_full_compliance_aggregates():
    checker = make_checker()
    result = await checker.check_full_compliance("", "promotion", "hash-a")

    assert not result.is_compliant
    assert "Message cannot be empty" in result.violations
    assert "Invalid notification type: promotion" in result.violations


def test_guidelines_are_a_copy():
    guidelines = ComplianceChecker.get_compliance_guidelines()
    guidelines.clear()
    assert ComplianceChecker.get_compliance_guidelines()
