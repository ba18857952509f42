"""Error categorization, severity and retryability from message text."""
import pytest

from order_notify.application.services.error_classifier import (
    categorize_error,
    determine_severity,
    error_text,
    is_retryable_error,
)
from order_notify.domain.enums import ErrorCategory, ErrorSeverity


@pytest.mark.parametrize("message,category", [
    ("Connection refused by instance", ErrorCategory.CONNECTION),
    ("Authentication failed: bad apikey", ErrorCategory.AUTHENTICATION),
    ("Invalid phone format", ErrorCategory.PHONE_VALIDATION),
    ("Evolution API error (429): Too Many Requests", ErrorCategory.RATE_LIMIT),
    ("Network timeout after 45.0s", ErrorCategory.NETWORK),
    ("sqlalchemy.exc.OperationalError", ErrorCategory.DATABASE),
    ("Evolution API not configured", ErrorCategory.CONFIGURATION),
    ("Failed to send", ErrorCategory.MESSAGE_DELIVERY),
    ("something odd", ErrorCategory.UNKNOWN),
])
def test_categorize(message, category):
    assert categorize_error(RuntimeError(message)) == category


def test_rules_are_ordered():
    # "connection" is checked before "timeout"
    assert categorize_error("connection timeout") == ErrorCategory.CONNECTION


def test_severity_table():
    assert determine_severity(ErrorCategory.AUTHENTICATION) == ErrorSeverity.CRITICAL
    assert determine_severity(ErrorCategory.CONFIGURATION) == ErrorSeverity.CRITICAL
    assert determine_severity(ErrorCategory.CONNECTION) == ErrorSeverity.HIGH
    assert determine_severity(ErrorCategory.RATE_LIMIT) == ErrorSeverity.MEDIUM
    assert determine_severity(ErrorCategory.PHONE_VALIDATION) == ErrorSeverity.LOW
    assert determine_severity(ErrorCategory.UNKNOWN) == ErrorSeverity.MEDIUM


@pytest.mark.parametrize("message,retryable", [
    ("Network timeout after 45.0s", True),
    ("Evolution API error (503): unavailable", True),
    ("Evolution API error (429): slow down", True),
    ("Instance busy, try again", True),
    ("Evolution API error (400): bad number", False),
    ("Evolution API not configured", False),
])
def test_retryable(message, retryable):
    assert is_retryable_error(message) is retryable


def test_empty_message_falls_back_to_type_name():
    assert error_text(TimeoutError()) == "TimeoutError"
    assert categorize_error(TimeoutError()) == ErrorCategory.NETWORK
