"""Pydantic schemas for opt-out records."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OptOutRecord(BaseModel):
    id: str
    customer_phone: str
    customer_phone_hash: str
    opted_out_at: datetime
    reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OptOutStats(BaseModel):
    total_opt_outs: int = 0
    opt_outs_today: int = 0
    opt_outs_this_week: int = 0
    opt_outs_this_month: int = 0
