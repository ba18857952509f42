"""Evolution API HTTP client: WhatsApp text transport.

The queue owns retry/backoff, so ``send_text`` makes exactly one attempt
and raises ``EvolutionAPIError`` with a descriptive message on failure.
Messages embed the HTTP status so the error classifier can tell
rate limiting and 5xx responses apart from permanent failures.
"""

import logging
import re
from typing import Optional

import httpx

from order_notify.application.services.phone_validator import mask_phone
from order_notify.config import Settings
from order_notify.core.exceptions import EvolutionAPIError

logger = logging.getLogger(__name__)

# Phone-like digit runs, optionally punctuated: "5511999999999", "+55 (11) 99999-9999"
PHONE_LIKE = re.compile(r"\+?\d[\d\s().-]{6,}\d")


def redact_phones(text: str) -> str:
    """Mask phone numbers echoed back in provider error bodies."""
    return PHONE_LIKE.sub(lambda m: mask_phone(m.group(0)), text)


class EvolutionAPIClient:
    """Client for an Evolution API WhatsApp instance."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.EVOLUTION_API_URL.rstrip("/")
        self.api_key = settings.EVOLUTION_API_KEY
        self.instance = settings.EVOLUTION_INSTANCE
        self.timeout = settings.EVOLUTION_TIMEOUT_SECONDS
        self.headers = {
            "apikey": self.api_key,
            "Content-Type": "application/json",
        }
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key and self.instance)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def send_text(self, number: str, text: str) -> dict:
        """
        Send a text message.

        Args:
            number: Normalized destination (55 + DDD + number)
            text: Message body

        Returns ``{"messageId": ...}`` as reported by the instance.
        """
        if not self.is_configured:
            raise EvolutionAPIError("Evolution API not configured: missing URL, API key or instance")

        url = f"{self.base_url}/message/sendText/{self.instance}"
        payload = {
            "number": number,
            "textMessage": {"text": text},
            "options": {"delay": 1200, "presence": "composing"},
        }

        try:
            async with self._client(self.timeout) as client:
                response = await client.post(url, json=payload, headers=self.headers)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_text = redact_phones(e.response.text[:200]) if e.response.text else "No response body"
            logger.warning(f"Evolution API error: {status_code} - {error_text}")
            raise EvolutionAPIError(
                f"Evolution API error ({status_code}): {error_text}", http_status=status_code
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Evolution API timeout after {self.timeout}s")
            raise EvolutionAPIError(f"Network timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            logger.warning(f"Evolution API network error: {e}")
            raise EvolutionAPIError(f"Network error: {e}") from e

        message_id = (result.get("key") or {}).get("id") or result.get("messageId")
        if not message_id:
            raise EvolutionAPIError("Failed to send message: response carried no message id")

        logger.info(f"Message sent via Evolution API (id={message_id})")
        return {"messageId": message_id}

    async def check_instance_status(self) -> dict:
        """Check if the Evolution API instance is connected."""
        url = f"{self.base_url}/instance/connectionState/{self.instance}"
        try:
            async with self._client(10) as client:
                response = await client.get(url, headers=self.headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to check instance status: {e}")
            return {"state": "error", "error": str(e)}

    async def set_webhook(self, webhook_url: str, events: Optional[list[str]] = None) -> dict:
        """Point the instance's webhook at this service (inbound opt-out keywords)."""
        url = f"{self.base_url}/webhook/set/{self.instance}"
        payload = {
            "url": webhook_url,
            "enabled": True,
            "webhook_by_events": False,
            "webhook_base64": False,
            "events": events or ["MESSAGES_UPSERT"],
        }
        async with self._client(10) as client:
            response = await client.post(url, json=payload, headers=self.headers)
            response.raise_for_status()
            return response.json()
