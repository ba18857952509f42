"""
Message Template Repository Interface.
"""

from typing import Any, List, Optional, Protocol

from order_notify.domain.schemas.template import MessageTemplate


class TemplateRepository(Protocol):
    """Template store backing the renderer's cache."""

    async def get_active(self, template_type: str) -> Optional[MessageTemplate]:
        """The most recently created active template for a type."""
        ...

    async def list_all(self) -> List[MessageTemplate]:
        ...

    async def add(self, template: MessageTemplate) -> MessageTemplate:
        ...

    async def update(self, template_id: str, **fields: Any) -> Optional[MessageTemplate]:
        ...
