"""Typed results of ``QueueManager.enqueue``.

Expected rejections are returned, not raised, so callers can ``match`` on them.
"""

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Enqueued:
    notification_id: str


@dataclass(frozen=True)
class InvalidPhone:
    reason: str


@dataclass(frozen=True)
class OptedOut:
    pass


@dataclass(frozen=True)
class ComplianceViolation:
    violations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RenderFailure:
    reason: str


EnqueueOutcome = Union[Enqueued, InvalidPhone, OptedOut, ComplianceViolation, RenderFailure]


def describe_outcome(outcome: EnqueueOutcome) -> dict:
    """Flatten an outcome into a JSON-friendly dict for API responses and logs."""
    match outcome:
        case Enqueued(notification_id=notification_id):
            return {"status": "enqueued", "notification_id": notification_id}
        case InvalidPhone(reason=reason):
            return {"status": "invalid_phone", "reasons": [reason]}
        case OptedOut():
            return {"status": "opted_out", "reasons": ["Customer has opted out of notifications"]}
        case ComplianceViolation(violations=violations):
            return {"status": "compliance_violation", "reasons": list(violations)}
        case RenderFailure(reason=reason):
            return {"status": "render_failure", "reasons": [reason]}
    raise TypeError(f"Unknown enqueue outcome: {outcome!r}")
