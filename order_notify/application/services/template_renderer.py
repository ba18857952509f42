"""Message template store and renderer.

Stored templates use ``{{variable}}`` placeholders and are cached per type
for a short TTL. When no active template is stored (or the store is
unreachable) the built-in set is used: rotating variants for
payment_confirmed / preparing / ready, fixed defaults for the rest.
"""

import re
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

import pytz
import structlog

from order_notify.application.services.message_variations import (
    VARIANTS_BY_TYPE,
    VariantSelector,
    first_name,
    money,
)
from order_notify.application.services.phone_validator import format_phone_for_display
from order_notify.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    TemplateRenderError,
)
from order_notify.core.timeutils import Clock, utcnow
from order_notify.domain.enums import NotificationType
from order_notify.domain.repositories.template_repository import TemplateRepository
from order_notify.domain.schemas.notification import OrderData
from order_notify.domain.schemas.template import (
    MessageTemplate,
    TemplateCreate,
    TemplateUpdate,
    TemplateValidation,
)

logger = structlog.get_logger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")
MAX_TEMPLATE_LENGTH = 4096
ESTIMATED_TIME = "15-20 minutos"

ORDER_STATUS_LABELS = {
    "pending": "Pendente",
    "pending_payment": "Aguardando Pagamento",
    "paid": "Pago",
    "in_preparation": "Em Preparo",
    "preparing": "Em Preparo",
    "ready": "Pronto",
    "completed": "Finalizado",
    "cancelled": "Cancelado",
}

DEFAULT_TEMPLATES = {
    NotificationType.ORDER_CREATED: (
        "🌴 *{{businessName}}* 🌴\n\n"
        "🎉 *Pedido #{{orderNumber}} Criado!*\n\n"
        "Olá {{firstName}}! Recebemos o seu pedido!\n\n"
        "📋 *Itens do Pedido:*\n{{itemsList}}\n\n"
        "💰 *Total:* {{totalAmount}}\n\n"
        "Você receberá uma nova mensagem quando o pagamento for confirmado. 🥥🌊"
    ),
    NotificationType.PAYMENT_CONFIRMED: (
        "🌴 *{{businessName}}* 🌴\n\n"
        "✅ *Pedido Confirmado!*\n\n"
        "📋 *Pedido #{{orderNumber}}*\n"
        "👤 *Cliente:* {{customerName}}\n"
        "📱 *Telefone:* {{customerPhone}}\n\n"
        "📝 *Itens do Pedido:*\n{{itemsList}}\n\n"
        "💰 *Total:* {{totalAmount}}\n\n"
        "⏰ *Tempo estimado:* {{estimatedTime}}\n\n"
        "Você receberá uma nova mensagem quando seu pedido estiver pronto para retirada! 🥥🌊"
    ),
    NotificationType.PREPARING: (
        "🌴 *{{businessName}}* 🌴\n\n"
        "👨‍🍳 *Pedido em Preparo!*\n\n"
        "📋 *Pedido #{{orderNumber}}*\n"
        "👤 *Cliente:* {{customerName}}\n\n"
        "Seu pedido está sendo preparado com carinho!\n\n"
        "⏰ *Tempo estimado:* {{estimatedTime}} 🥥🌊"
    ),
    NotificationType.READY: (
        "🌴 *{{businessName}}* 🌴\n\n"
        "🎉 *Seu pedido está pronto para retirada no balcão!*\n\n"
        "📋 *Pedido #{{orderNumber}}*\n"
        "👤 *Cliente:* {{customerName}}\n\n"
        "✨ Por favor, apresente o número do seu pedido: *#{{orderNumber}}*"
    ),
    NotificationType.CUSTOM: (
        "🌴 *{{businessName}}* 🌴\n\n"
        "📋 *Pedido #{{orderNumber}}*\n"
        "👤 *Cliente:* {{customerName}}\n\n"
        "{{customMessage}}\n\n"
        "🥥🌊"
    ),
}


def extract_variables(content: str) -> list[str]:
    """Placeholder names in order of first appearance, without duplicates."""
    seen: list[str] = []
    for name in VARIABLE_PATTERN.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


def validate_template(content: str, required_variables: Optional[list[str]] = None) -> TemplateValidation:
    errors = []
    if not content or not content.strip():
        errors.append("Template content cannot be empty")
    if content and len(content) > MAX_TEMPLATE_LENGTH:
        errors.append(f"Template content exceeds WhatsApp message limit ({MAX_TEMPLATE_LENGTH} characters)")
    present = extract_variables(content)
    for required in required_variables or []:
        if required not in present:
            errors.append(f"Required variable {{{{{required}}}}} is missing")
    return TemplateValidation(is_valid=not errors, errors=errors)


def default_template(template_type: NotificationType) -> MessageTemplate:
    content = DEFAULT_TEMPLATES.get(template_type, DEFAULT_TEMPLATES[NotificationType.CUSTOM])
    return MessageTemplate(
        id=f"default-{template_type.value}",
        template_type=template_type,
        content=content,
        variables=extract_variables(content),
        is_active=True,
    )


class TemplateRenderer:
    """Renders notification bodies from stored or built-in templates."""

    def __init__(
        self,
        repository: TemplateRepository,
        business_name: str,
        tz: pytz.BaseTzInfo,
        selector: Optional[VariantSelector] = None,
        cache_ttl_seconds: int = 300,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.business_name = business_name
        self.tz = tz
        self.selector = selector or VariantSelector()
        self.cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self.clock = clock
        self._cache: dict[NotificationType, tuple[Optional[MessageTemplate], datetime]] = {}

    # -- template store ---------------------------------------------------

    async def get_template(self, template_type: NotificationType) -> Optional[MessageTemplate]:
        """Active stored template for a type, or None when none is stored."""
        now = self.clock()
        cached = self._cache.get(template_type)
        if cached and now - cached[1] < self.cache_ttl:
            return cached[0]

        template = await self.repository.get_active(template_type)
        self._cache[template_type] = (template, now)
        return template

    async def get_all_templates(self) -> list[MessageTemplate]:
        return await self.repository.list_all()

    async def create_template(self, data: TemplateCreate) -> MessageTemplate:
        validation = validate_template(data.content)
        if not validation.is_valid:
            raise BusinessRuleViolationException("Invalid template", {"errors": validation.errors})

        now = self.clock()
        template = MessageTemplate(
            id=str(uuid4()),
            template_type=data.template_type,
            content=data.content,
            variables=data.variables if data.variables is not None else extract_variables(data.content),
            is_active=data.is_active,
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.add(template)
        self._cache.pop(data.template_type, None)
        logger.info("template_created", template_id=created.id, template_type=data.template_type.value)
        return created

    async def update_template(self, template_id: str, changes: TemplateUpdate) -> MessageTemplate:
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "content" in fields:
            validation = validate_template(fields["content"])
            if not validation.is_valid:
                raise BusinessRuleViolationException("Invalid template", {"errors": validation.errors})
            fields.setdefault("variables", extract_variables(fields["content"]))
        fields["updated_at"] = self.clock()

        updated = await self.repository.update(template_id, **fields)
        if updated is None:
            raise EntityNotFoundException(f"Template {template_id} not found")
        self._cache.pop(updated.template_type, None)
        logger.info("template_updated", template_id=template_id)
        return updated

    def clear_cache(self) -> None:
        self._cache.clear()

    validate_template = staticmethod(validate_template)
    extract_variables = staticmethod(extract_variables)

    # -- rendering --------------------------------------------------------

    def template_variables(self, order: OrderData, custom_message: Optional[str] = None) -> dict[str, str]:
        created_local = order.created_at.astimezone(self.tz) if order.created_at.tzinfo else order.created_at
        return {
            "orderNumber": str(order.order_number),
            "customerName": order.customer_name,
            "firstName": first_name(order),
            "customerPhone": format_phone_for_display(order.customer_phone),
            "tableNumber": order.table_number or "",
            "totalAmount": money(order.total_amount),
            "status": ORDER_STATUS_LABELS.get(order.status, order.status),
            "itemCount": str(len(order.items)),
            "itemsList": "\n".join(
                f"• {i.quantity}x {i.item_name} - {money(i.unit_price)}" for i in order.items
            ),
            "createdAt": created_local.strftime("%d/%m/%Y %H:%M"),
            "estimatedTime": ESTIMATED_TIME,
            "customMessage": custom_message or "",
            "businessName": self.business_name,
        }

    def render_template(
        self,
        template: MessageTemplate,
        order: OrderData,
        custom_message: Optional[str] = None,
    ) -> str:
        """Substitute known variables. Unknown placeholders are left as-is."""
        values = self.template_variables(order, custom_message)
        return VARIABLE_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), template.content)

    async def render(
        self,
        notification_type: NotificationType,
        order: Optional[OrderData],
        custom_message: Optional[str] = None,
    ) -> str:
        """Produce the message body for a notification.

        A caller-supplied message for a non-custom type is sent verbatim
        and ``order`` may be None in that case.
        Raises ``TemplateRenderError`` when no body can be produced.
        """
        if custom_message and notification_type != NotificationType.CUSTOM:
            return custom_message
        if notification_type == NotificationType.CUSTOM and not (custom_message or "").strip():
            raise TemplateRenderError("Custom notifications require message text")

        try:
            template = await self.get_template(notification_type)
        except Exception as e:
            logger.warning("template_lookup_failed", template_type=notification_type.value, error=str(e))
            template = None

        try:
            if template is not None:
                return self.render_template(template, order, custom_message)

            variants = VARIANTS_BY_TYPE.get(notification_type.value)
            if variants is not None:
                return self.selector.pick(variants(order))
            return self.render_template(default_template(notification_type), order, custom_message)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TemplateRenderError(f"Failed to render {notification_type.value} message: {e}") from e
