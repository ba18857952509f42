"""
Error logger.
- Entries are classified, sanitized, and stored with encrypted phones
- Alert thresholds: critical always, >10/h overall, >5/h per category
- log_error never raises
"""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from order_notify.application.services.error_logger import sanitize_context
from order_notify.domain.enums import AlertType, ErrorCategory, ErrorSeverity
from order_notify.domain.schemas.monitoring import ErrorContext
from tests.fakes import PHONE


def test_sanitize_context_redacts_message_fields_recursively():
    context = {
        "operation": "send",
        "messageContent": "Olá Maria",
        "nested": {"Text": "secret", "attempts": 2, "items": [{"body": "x"}, 3]},
        "when": object,
    }
    clean = sanitize_context(context)

    assert clean["operation"] == "send"
    assert clean["messageContent"] == "[REDACTED]"
    assert clean["nested"]["Text"] == "[REDACTED]"
    assert clean["nested"]["attempts"] == 2
    assert clean["nested"]["items"] == [{"body": "[REDACTED]"}, 3]
    assert isinstance(clean["when"], str)


@pytest.mark.asyncio
async def test_log_error_stores_classified_entry(stack):
    try:
        raise RuntimeError("Network timeout after 45.0s")
    except RuntimeError as e:
        entry = await stack.error_logger.log_error(e, ErrorContext(
            operation="process_notification",
            order_id="order-1",
            customer_phone=PHONE,
            notification_id="n-1",
            additional_data={"message_content": "Olá", "attempts": 1},
        ))

    assert entry.category == ErrorCategory.NETWORK
    assert entry.severity == ErrorSeverity.MEDIUM
    assert entry.is_retryable
    assert "RuntimeError" in entry.error_stack
    assert entry.context == {"operation": "process_notification", "message_content": "[REDACTED]", "attempts": 1}

    stored = stack.errors.entries[0]
    assert stored.customer_phone != PHONE
    assert stack.cipher.decrypt(stored.customer_phone) == PHONE

    shown = await stack.error_logger.get_order_errors("order-1")
    assert shown[0].customer_phone == PHONE


@pytest.mark.asyncio
async def test_critical_error_always_alerts(stack):
    await stack.error_logger.log_error("Authentication failed", ErrorContext(operation="send"))

    assert [a.alert_type for a in stack.alerts.alerts] == [AlertType.CRITICAL_ERROR]
    assert stack.alerts.alerts[0].category == ErrorCategory.AUTHENTICATION


@pytest.mark.asyncio
async def test_category_threshold_alert(stack):
    for _ in range(6):
        await stack.error_logger.log_error("Invalid phone format", ErrorContext(operation="enqueue"))

    types = [a.alert_type for a in stack.alerts.alerts]
    assert types == [AlertType.CATEGORY_THRESHOLD]


@pytest.mark.asyncio
async def test_error_rate_alert(stack):
    for i in range(11):
        await stack.error_logger.log_error(f"odd failure {i}", ErrorContext(operation="x"))

    assert AlertType.HIGH_ERROR_RATE in [a.alert_type for a in stack.alerts.alerts]


@pytest.mark.asyncio
async def test_log_error_survives_storage_failures(stack):
    stack.errors.add = AsyncMock(side_effect=RuntimeError("db down"))
    stack.alerts.add = AsyncMock(side_effect=RuntimeError("db down"))

    entry = await stack.error_logger.log_error("Authentication failed", ErrorContext(operation="send"))
    assert entry is not None
    assert entry.category == ErrorCategory.AUTHENTICATION


@pytest.mark.asyncio
async def test_stats_and_cleanup(stack):
    await stack.error_logger.log_error("Invalid phone format", ErrorContext(operation="a"))
    stack.clock.advance(days=31)
    await stack.error_logger.log_error("Network timeout", ErrorContext(operation="b"))

    stats = await stack.error_logger.get_error_stats()
    assert stats.total_errors == 1
    assert stats.errors_by_category == {"network": 1}
    assert stats.error_rate == pytest.approx(1 / 24)

    assert await stack.error_logger.cleanup_old_logs() == 1
    assert len(stack.errors.entries) == 1
    assert await stack.error_logger.cleanup_old_logs(retention_days=0) == 0

    stack.clock.advance(seconds=1)
    assert await stack.error_logger.cleanup_old_logs(retention_days=0) == 1


@pytest.mark.asyncio
async def test_stats_window(stack):
    await stack.error_logger.log_error("Network timeout", ErrorContext(operation="b"))
    stats = await stack.error_logger.get_error_stats(stack.clock() - timedelta(hours=1))
    assert stats.error_rate == pytest.approx(1.0)
    assert len(stats.recent_errors) == 1
