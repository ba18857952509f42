"""Opt-out registry API routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.domain.schemas.opt_out import OptOutRecord, OptOutStats
from order_notify.interfaces.deps import get_opt_out_registry

router = APIRouter(prefix="/api/opt-outs", tags=["Opt-Outs"])


class OptOutRequest(BaseModel):
    phone: str
    reason: Optional[str] = None


class OptInRequest(BaseModel):
    phone: str


@router.get("", response_model=list[OptOutRecord])
async def list_opt_outs(registry: OptOutRegistry = Depends(get_opt_out_registry)):
    return await registry.get_all_opt_outs()


@router.get("/stats", response_model=OptOutStats)
async def opt_out_stats(registry: OptOutRegistry = Depends(get_opt_out_registry)):
    return await registry.get_opt_out_stats()


@router.post("")
async def opt_out(body: OptOutRequest, registry: OptOutRegistry = Depends(get_opt_out_registry)):
    """Opt a customer out and cancel their pending notifications."""
    cancelled = await registry.opt_out(body.phone, body.reason)
    return {"opted_out": True, "cancelled_notifications": cancelled}


@router.post("/opt-in")
async def opt_in(body: OptInRequest, registry: OptOutRegistry = Depends(get_opt_out_registry)):
    removed = await registry.opt_in(body.phone)
    return {"opted_in": removed}
