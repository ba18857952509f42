"""Customer opt-out registry.

A record's presence is the only source of truth for opt-out. Records are
keyed by the phone's blind index, since the stored phone is ciphertext.
"""

from datetime import timedelta
from typing import Optional
from uuid import uuid4

import pytz
import structlog

from order_notify.application.services.phone_cipher import PhoneCipher
from order_notify.application.services.phone_validator import mask_phone, normalize_phone
from order_notify.core.timeutils import Clock, local_day_start, utcnow
from order_notify.domain.repositories.notification_repository import NotificationRepository
from order_notify.domain.repositories.opt_out_repository import OptOutRepository
from order_notify.domain.schemas.opt_out import OptOutRecord, OptOutStats

logger = structlog.get_logger(__name__)


class OptOutRegistry:

    def __init__(
        self,
        opt_outs: OptOutRepository,
        notifications: NotificationRepository,
        cipher: PhoneCipher,
        tz: pytz.BaseTzInfo,
        clock: Clock = utcnow,
    ):
        self.opt_outs = opt_outs
        self.notifications = notifications
        self.cipher = cipher
        self.tz = tz
        self.clock = clock

    async def is_opted_out(self, phone: str) -> bool:
        """Fails open: validation or lookup errors report False."""
        try:
            normalized = normalize_phone(phone)
            record = await self.opt_outs.get_by_phone_hash(self.cipher.fingerprint(normalized))
            return record is not None
        except Exception as e:
            logger.warning("opt_out_check_failed", phone=mask_phone(phone), error=str(e))
            return False

    async def opt_out(self, phone: str, reason: Optional[str] = None) -> int:
        """Record the opt-out and cancel the phone's pending notifications.

        Returns the number of notifications cancelled. Raises
        ``InvalidPhoneNumberError`` for malformed numbers.
        """
        normalized = normalize_phone(phone)
        phone_hash = self.cipher.fingerprint(normalized)
        now = self.clock()

        await self.opt_outs.upsert(OptOutRecord(
            id=str(uuid4()),
            customer_phone=self.cipher.encrypt_safe(normalized),
            customer_phone_hash=phone_hash,
            opted_out_at=now,
            reason=reason,
            created_at=now,
            updated_at=now,
        ))
        cancelled = await self.notifications.cancel_pending_for_phone(phone_hash)

        logger.info("customer_opted_out", phone=mask_phone(normalized), cancelled=cancelled, reason=reason)
        return cancelled

    async def opt_in(self, phone: str) -> bool:
        """Remove the opt-out record. Cancelled notifications stay cancelled."""
        normalized = normalize_phone(phone)
        removed = await self.opt_outs.delete_by_phone_hash(self.cipher.fingerprint(normalized))
        logger.info("customer_opted_in", phone=mask_phone(normalized), removed=removed)
        return removed

    async def get_all_opt_outs(self) -> list[OptOutRecord]:
        records = await self.opt_outs.list_all()
        return [
            r.model_copy(update={"customer_phone": self.cipher.decrypt_safe(r.customer_phone)})
            for r in records
        ]

    async def get_opt_out_stats(self) -> OptOutStats:
        now = self.clock()
        return OptOutStats(
            total_opt_outs=await self.opt_outs.count_since(None),
            opt_outs_today=await self.opt_outs.count_since(local_day_start(now, self.tz)),
            opt_outs_this_week=await self.opt_outs.count_since(now - timedelta(days=7)),
            opt_outs_this_month=await self.opt_outs.count_since(now - timedelta(days=30)),
        )
