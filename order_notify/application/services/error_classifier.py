"""Rule-based classification of delivery errors from their message text.

The transport gives no structured error codes, so categories and
retryability are derived from substrings of ``str(error)``. Rules are
evaluated in order; the first match wins.
"""

from order_notify.domain.enums import ErrorCategory, ErrorSeverity

CATEGORY_RULES: tuple[tuple[tuple[str, ...], ErrorCategory], ...] = (
    (("connection", "disconnect", "websocket"), ErrorCategory.CONNECTION),
    (("auth", "credential", "session"), ErrorCategory.AUTHENTICATION),
    (("phone", "number", "invalid format"), ErrorCategory.PHONE_VALIDATION),
    (("rate limit", "429", "throttle"), ErrorCategory.RATE_LIMIT),
    (("network", "timeout", "timed out", "econnrefused"), ErrorCategory.NETWORK),
    (("database", "sqlalchemy", "query"), ErrorCategory.DATABASE),
    (("config", "not configured", "missing"), ErrorCategory.CONFIGURATION),
    (("send", "deliver", "message"), ErrorCategory.MESSAGE_DELIVERY),
)

RETRYABLE_PATTERNS: tuple[str, ...] = (
    # network
    "network", "timeout", "timed out", "connection",
    # 5xx
    "500", "502", "503", "504",
    # throttling
    "429", "rate limit",
    # transient provider states
    "temporary", "try again", "busy",
)

SEVERITY_BY_CATEGORY = {
    ErrorCategory.AUTHENTICATION: ErrorSeverity.CRITICAL,
    ErrorCategory.CONFIGURATION: ErrorSeverity.CRITICAL,
    ErrorCategory.CONNECTION: ErrorSeverity.HIGH,
    ErrorCategory.MESSAGE_DELIVERY: ErrorSeverity.MEDIUM,
    ErrorCategory.RATE_LIMIT: ErrorSeverity.MEDIUM,
    ErrorCategory.PHONE_VALIDATION: ErrorSeverity.LOW,
}


def error_text(error: BaseException | str) -> str:
    text = str(error)
    # Exceptions with an empty message (e.g. a bare TimeoutError) still carry their type
    if not text and isinstance(error, BaseException):
        text = type(error).__name__
    return text


def categorize_error(error: BaseException | str) -> ErrorCategory:
    message = error_text(error).lower()
    for patterns, category in CATEGORY_RULES:
        if any(p in message for p in patterns):
            return category
    return ErrorCategory.UNKNOWN


def determine_severity(category: ErrorCategory) -> ErrorSeverity:
    return SEVERITY_BY_CATEGORY.get(category, ErrorSeverity.MEDIUM)


def is_retryable_error(error: BaseException | str) -> bool:
    message = error_text(error).lower()
    return any(p in message for p in RETRYABLE_PATTERNS)
