"""
Messaging Transport Interface.
"""

from typing import Protocol


class MessageTransport(Protocol):
    """Sends a WhatsApp text. Failures raise with a descriptive message."""

    async def send_text(self, number: str, text: str) -> dict:
        """Returns ``{"messageId": str}``."""
        ...
