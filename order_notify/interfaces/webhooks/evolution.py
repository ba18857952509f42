"""Evolution API webhook: inbound WhatsApp replies used for opt-out and opt-in keywords."""

import logging
import unicodedata

from fastapi import APIRouter, Depends, HTTPException, Request

from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.application.services.phone_validator import mask_phone, validate_phone_number
from order_notify.interfaces.deps import get_opt_out_registry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

OPT_OUT_KEYWORDS = frozenset({"PARAR", "SAIR", "STOP", "CANCELAR"})
OPT_IN_KEYWORDS = frozenset({"VOLTAR", "START"})


def normalize_keyword(text: str) -> str:
    """Upper-case, accent-free, trimmed, trailing punctuation dropped."""
    decomposed = unicodedata.normalize("NFKD", text.strip())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.upper().rstrip(".!?")


@router.post("/evolution")
async def evolution_webhook(request: Request, registry: OptOutRegistry = Depends(get_opt_out_registry)):
    """
    Receive incoming WhatsApp messages from the Evolution API.
    A reply consisting only of an opt-out or opt-in keyword updates the registry.
    """
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    event = body.get("event")
    if event != "messages.upsert":
        return {"status": "ignored", "event": event}

    data = body.get("data") or {}
    key = data.get("key") or {}
    message_data = data.get("message") or {}

    if key.get("fromMe", False):
        return {"status": "ignored", "reason": "outgoing"}

    remote_jid = key.get("remoteJid", "")
    if "status@broadcast" in remote_jid or remote_jid.endswith("@g.us"):
        return {"status": "ignored", "reason": "not_direct_message"}

    text = (
        message_data.get("conversation")
        or (message_data.get("extendedTextMessage") or {}).get("text")
        or ""
    )
    keyword = normalize_keyword(text)
    if keyword not in OPT_OUT_KEYWORDS and keyword not in OPT_IN_KEYWORDS:
        return {"status": "ignored", "reason": "no_keyword"}

    sender = remote_jid.split("@")[0]
    validation = validate_phone_number(sender)
    if not validation.is_valid:
        logger.warning(f"Keyword {keyword} from unsupported number {mask_phone(sender)}: {validation.error}")
        return {"status": "ignored", "reason": "invalid_phone"}

    phone = validation.formatted_number
    if keyword in OPT_OUT_KEYWORDS:
        cancelled = await registry.opt_out(phone, reason=f"WhatsApp reply: {keyword}")
        logger.info(f"Opt-out via WhatsApp from {mask_phone(phone)} ({cancelled} pending cancelled)")
        return {"status": "opted_out", "cancelled_notifications": cancelled}

    await registry.opt_in(phone)
    logger.info(f"Opt-in via WhatsApp from {mask_phone(phone)}")
    return {"status": "opted_in"}
