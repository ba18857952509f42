"""In-memory repository and transport fakes mirroring the SQLAlchemy implementations."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

import pytz

from order_notify.domain.enums import NotificationStatus
from order_notify.domain.schemas.monitoring import Alert, ErrorLogEntry
from order_notify.domain.schemas.notification import OrderData, OrderItem, QueuedNotification
from order_notify.domain.schemas.opt_out import OptOutRecord
from order_notify.domain.schemas.template import MessageTemplate


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


class FakeClock:
    """Settable clock; ``advance`` moves it forward."""

    def __init__(self, now: Optional[datetime] = None):
        # 15:00 in São Paulo, inside business hours
        self.now = now or datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryNotificationRepository:

    def __init__(self):
        self.rows: dict[str, QueuedNotification] = {}
        self.fail_fetch = False

    async def add(self, notification: QueuedNotification) -> None:
        self.rows[notification.id] = notification

    async def get(self, notification_id: str) -> Optional[QueuedNotification]:
        return self.rows.get(notification_id)

    async def update(self, notification_id: str, **fields: Any) -> None:
        if notification_id in self.rows:
            self.rows[notification_id] = self.rows[notification_id].model_copy(update=fields)

    async def fetch_due(self, now: datetime, max_attempts: int, limit: int) -> list[QueuedNotification]:
        if self.fail_fetch:
            raise RuntimeError("database unavailable")
        due = [
            n for n in self.rows.values()
            if n.status == NotificationStatus.PENDING and n.attempts < max_attempts and n.scheduled_at <= now
        ]
        return sorted(due, key=lambda n: n.scheduled_at)[:limit]

    async def list_for_order(self, order_id: str) -> list[QueuedNotification]:
        rows = [n for n in self.rows.values() if n.order_id == order_id]
        return sorted(rows, key=lambda n: n.created_at, reverse=True)

    async def list_since(self, since: datetime) -> list[QueuedNotification]:
        rows = [n for n in self.rows.values() if n.created_at >= since]
        return sorted(rows, key=lambda n: n.created_at, reverse=True)

    async def cancel_if_pending(self, notification_id: str) -> bool:
        row = self.rows.get(notification_id)
        if row is None or row.status != NotificationStatus.PENDING:
            return False
        self.rows[notification_id] = row.model_copy(update={"status": NotificationStatus.CANCELLED})
        return True

    async def cancel_pending_for_phone(self, phone_hash: str) -> int:
        count = 0
        for row in list(self.rows.values()):
            if row.customer_phone_hash == phone_hash and row.status == NotificationStatus.PENDING:
                self.rows[row.id] = row.model_copy(update={"status": NotificationStatus.CANCELLED})
                count += 1
        return count

    async def reset_failed(self, max_attempts: int, now: datetime) -> int:
        count = 0
        for row in list(self.rows.values()):
            if row.status == NotificationStatus.FAILED and row.attempts < max_attempts:
                self.rows[row.id] = row.model_copy(update={
                    "status": NotificationStatus.PENDING,
                    "attempts": 0,
                    "error_message": None,
                    "scheduled_at": now,
                })
                count += 1
        return count

    async def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.rows.values():
            counts[_value(row.status)] = counts.get(_value(row.status), 0) + 1
        return counts

    async def count_created_since(self, since: datetime, status: Optional[str] = None) -> int:
        return sum(
            1 for n in self.rows.values()
            if n.created_at >= since and (status is None or _value(n.status) == _value(status))
        )

    async def count_for_phone_since(self, phone_hash: str, since: datetime) -> int:
        return sum(1 for n in self.rows.values() if n.customer_phone_hash == phone_hash and n.created_at >= since)

    async def exists_for_order(
        self,
        order_id: str,
        notification_types: Sequence[str],
        statuses: Sequence[str],
        sent_since: Optional[datetime] = None,
    ) -> bool:
        types = {_value(t) for t in notification_types}
        wanted = {_value(s) for s in statuses}
        return any(
            n.order_id == order_id
            and _value(n.notification_type) in types
            and _value(n.status) in wanted
            and (sent_since is None or (n.sent_at is not None and n.sent_at >= sent_since))
            for n in self.rows.values()
        )


class InMemoryOptOutRepository:

    def __init__(self):
        self.records: dict[str, OptOutRecord] = {}
        self.fail_lookup = False

    async def get_by_phone_hash(self, phone_hash: str) -> Optional[OptOutRecord]:
        if self.fail_lookup:
            raise RuntimeError("database unavailable")
        return self.records.get(phone_hash)

    async def upsert(self, record: OptOutRecord) -> OptOutRecord:
        existing = self.records.get(record.customer_phone_hash)
        if existing is not None:
            record = existing.model_copy(update={
                "customer_phone": record.customer_phone,
                "opted_out_at": record.opted_out_at,
                "reason": record.reason,
                "updated_at": record.updated_at,
            })
        self.records[record.customer_phone_hash] = record
        return record

    async def delete_by_phone_hash(self, phone_hash: str) -> bool:
        return self.records.pop(phone_hash, None) is not None

    async def list_all(self) -> list[OptOutRecord]:
        return sorted(self.records.values(), key=lambda r: r.opted_out_at, reverse=True)

    async def count_since(self, since: Optional[datetime] = None) -> int:
        return sum(1 for r in self.records.values() if since is None or r.opted_out_at >= since)


class InMemoryErrorLogRepository:

    def __init__(self):
        self.entries: list[ErrorLogEntry] = []

    async def add(self, entry: ErrorLogEntry) -> None:
        self.entries.append(entry)

    async def list_since(self, since: datetime) -> list[ErrorLogEntry]:
        rows = [e for e in self.entries if e.timestamp >= since]
        return sorted(rows, key=lambda e: e.timestamp, reverse=True)

    async def list_for_order(self, order_id: str) -> list[ErrorLogEntry]:
        rows = [e for e in self.entries if e.order_id == order_id]
        return sorted(rows, key=lambda e: e.timestamp, reverse=True)

    async def delete_older_than(self, cutoff: datetime) -> int:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.timestamp >= cutoff]
        return before - len(self.entries)


class InMemoryAlertRepository:

    def __init__(self):
        self.alerts: list[Alert] = []

    async def add(self, alert: Alert) -> None:
        self.alerts.append(alert)

    async def find_recent(self, alert_type: str, since: datetime) -> Optional[Alert]:
        matches = [a for a in self.alerts if _value(a.alert_type) == _value(alert_type) and a.created_at >= since]
        return max(matches, key=lambda a: a.created_at) if matches else None

    async def list_unresolved(self) -> list[Alert]:
        return sorted((a for a in self.alerts if not a.is_resolved), key=lambda a: a.created_at, reverse=True)

    async def resolve(self, alert_id: str, resolved_at: datetime) -> bool:
        for i, alert in enumerate(self.alerts):
            if alert.id == alert_id and not alert.is_resolved:
                self.alerts[i] = alert.model_copy(update={"is_resolved": True, "resolved_at": resolved_at})
                return True
        return False


class InMemoryTemplateRepository:

    def __init__(self, templates: Optional[list[MessageTemplate]] = None):
        self.templates: dict[str, MessageTemplate] = {t.id: t for t in templates or []}
        self.lookups = 0
        self.fail_lookup = False

    async def get_active(self, template_type: str) -> Optional[MessageTemplate]:
        self.lookups += 1
        if self.fail_lookup:
            raise RuntimeError("template store unavailable")
        for t in self.templates.values():
            if _value(t.template_type) == _value(template_type) and t.is_active:
                return t
        return None

    async def list_all(self) -> list[MessageTemplate]:
        return list(self.templates.values())

    async def add(self, template: MessageTemplate) -> MessageTemplate:
        self.templates[template.id] = template
        return template

    async def update(self, template_id: str, **fields: Any) -> Optional[MessageTemplate]:
        if template_id not in self.templates:
            return None
        self.templates[template_id] = self.templates[template_id].model_copy(update=fields)
        return self.templates[template_id]


class InMemoryOrderProvider:

    def __init__(self, orders: Optional[list[OrderData]] = None):
        self.orders = {o.id: o for o in orders or []}

    async def get_order(self, order_id: str) -> Optional[OrderData]:
        return self.orders.get(order_id)


class FakeTransport:
    """Records sends; ``errors`` are raised in order before any success."""

    def __init__(self, errors: Optional[list[Exception]] = None):
        self.errors = list(errors or [])
        self.sent: list[tuple[str, str]] = []

    async def send_text(self, number: str, text: str) -> dict:
        if self.errors:
            raise self.errors.pop(0)
        self.sent.append((number, text))
        return {"messageId": f"wamid-{len(self.sent)}"}


TZ = pytz.timezone("America/Sao_Paulo")
PHONE = "5511999999999"


def make_order(order_id: str = "order-1", **overrides) -> OrderData:
    data = dict(
        id=order_id,
        order_number=42,
        customer_name="Maria Silva",
        customer_phone="(11) 99999-9999",
        table_number="7",
        total_amount=35.50,
        items=[
            OrderItem(item_name="Açaí 500ml", quantity=1, unit_price=26.50),
            OrderItem(item_name="Água de Coco", quantity=1, unit_price=9.00),
        ],
        status="paid",
        created_at=FakeClock().now - timedelta(minutes=5),
    )
    data.update(overrides)
    return OrderData(**data)
