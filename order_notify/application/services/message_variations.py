"""Rotating message variants used when no stored template is active.

Variant choice goes through an injectable ``random.Random`` so tests can
pin the output.
"""

import random
from typing import Callable, Optional, Sequence

from order_notify.domain.schemas.notification import OrderData

NOTIFICATION_TYPE_LABELS = {
    "order_created": "Pedido Criado",
    "payment_confirmed": "Pagamento Confirmado",
    "preparing": "Em Preparo",
    "in_preparation": "Em Preparo",
    "ready": "Pronto para Retirada",
    "custom": "Mensagem Personalizada",
}

NOTIFICATION_STATUS_LABELS = {
    "pending": "Pendente",
    "sent": "Enviada",
    "failed": "Falhou",
    "cancelled": "Cancelada",
}


def money(value: float) -> str:
    return f"R$ {value:.2f}"


def first_name(order: OrderData) -> str:
    parts = order.customer_name.split()
    return parts[0] if parts else order.customer_name


def items_with_totals(order: OrderData) -> str:
    return "\n".join(
        f"• {item.quantity}x {item.item_name} - {money(item.quantity * item.unit_price)}"
        for item in order.items
    )


def items_plain(order: OrderData) -> str:
    return "\n".join(f"• {item.quantity}x {item.item_name}" for item in order.items)


class VariantSelector:
    """Picks one phrasing variant per message."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def pick(self, variants: Sequence[str]) -> str:
        return self.rng.choice(list(variants))


def payment_confirmed_variants(order: OrderData) -> list[str]:
    name = first_name(order)
    items = items_with_totals(order)
    total = money(order.total_amount)
    number = order.order_number
    return [
        f"Olá, *{name}*! 🎉\n\nSeu pedido acaba de ser confirmado e já está sendo preparado!\n\n"
        f"📋 *Pedido #{number}*\n{items}\n\n💰 *Total:* {total}\n\n"
        f"⏰ Tempo estimado: 15-20 minutos\n\nVocê receberá uma notificação quando estiver pronto! 🥥",

        f"Oi, *{name}*! 👋\n\nConfirmamos seu pedido e nossa equipe já começou a preparar tudo com muito carinho!\n\n"
        f"📝 *Pedido #{number}*\n{items}\n\n💵 *Total:* {total}\n\n"
        f"🕐 Em breve estará pronto (15-20 min)\n\nTe avisamos quando puder retirar! 🌴",

        f"*{name}*, tudo certo! ✅\n\nPagamento confirmado. Seu pedido está em preparo.\n\n"
        f"🔖 *#{number}*\n{items}\n\n💳 *Pago:* {total}\n\n"
        f"⏱️ Previsão: 15-20 minutos\n\nAguarde nossa próxima mensagem! 🥥",

        f"E aí, *{name}*! 🤙\n\nPedido confirmado e já tá rolando na cozinha!\n\n"
        f"🎯 *Pedido #{number}*\n{items}\n\n💰 *Total:* {total}\n\n"
        f"⏰ Fica de olho! Em 15-20 min tá pronto\n\nLogo te chamamos! 🌊",

        f"*{name}*, pedido confirmado! ✓\n\nJá estamos preparando:\n\n"
        f"📦 *#{number}*\n{items}\n\n💵 {total}\n\n"
        f"⏰ 15-20 min\n\nTe avisamos quando estiver pronto! 🥥🌴",
    ]


def preparing_variants(order: OrderData) -> list[str]:
    name = first_name(order)
    items = items_plain(order)
    total = money(order.total_amount)
    number = order.order_number
    return [
        f"*{name}*, seu pedido entrou na cozinha! 👨‍🍳\n\nEstamos preparando tudo com carinho!\n\n"
        f"📋 *Pedido #{number}*\n{items}\n\n💰 *Total:* {total}\n\n"
        f"⏰ Em breve estará pronto!\n\nTe avisamos! 🥥",

        f"Oi, *{name}*! 👋\n\nSeu pedido já está sendo preparado pela nossa equipe!\n\n"
        f"🎯 *#{number}*\n{items}\n\n💵 {total}\n\n"
        f"🕐 Aguarde mais um pouquinho!\n\nLogo te chamamos! 🌴",

        f"*{name}*, pedido em preparo! 👨‍🍳\n\nNossa equipe está trabalhando no seu pedido.\n\n"
        f"📦 *Pedido #{number}*\n{items}\n\n💳 {total}\n\n"
        f"⏱️ Tempo estimado: 15-20 min\n\nAguarde! 🥥",

        f"E aí, *{name}*! 🤙\n\nTá rolando na cozinha!\n\n"
        f"🔖 *#{number}*\n{items}\n\n💰 {total}\n\n"
        f"⏰ Já já tá pronto!\n\nAguenta aí! 🌊",

        f"*{name}*, em preparo! 👨‍🍳\n\n"
        f"📝 *#{number}*\n{items}\n\n💵 {total}\n\n"
        f"⏰ 15-20 min\nLogo te avisamos! 🥥🌴",
    ]


def ready_variants(order: OrderData) -> list[str]:
    name = first_name(order)
    items = items_plain(order)
    total = money(order.total_amount)
    number = order.order_number
    return [
        f"*{name}*, seu pedido está pronto! 🎉\n\nPode vir buscar no balcão!\n\n"
        f"📋 *Pedido #{number}*\n{items}\n\n💰 *Total:* {total}\n\nTe esperamos! 🥥",

        f"Oi, *{name}*! 👋\n\nTudo prontinho aqui! Pode vir retirar seu pedido no balcão.\n\n"
        f"🎯 *#{number}*\n{items}\n\n💵 {total}\n\nAté já! 🌴",

        f"*{name}*, pronto para retirada! ✅\n\nSeu pedido te aguarda no balcão.\n\n"
        f"📦 *Pedido #{number}*\n{items}\n\n💳 {total}\n\nObrigado! 🥥",

        f"E aí, *{name}*! 🤙\n\nTá pronto! Cola aqui no balcão pra buscar.\n\n"
        f"🔖 *#{number}*\n{items}\n\n💰 {total}\n\nValeu! 🌊",

        f"*{name}*, pedido pronto! ✓\n\nRetire no balcão:\n\n"
        f"📝 *#{number}*\n{items}\n\n💵 {total}\n\nAguardamos você! 🥥🌴",
    ]


VARIANTS_BY_TYPE: dict[str, Callable[[OrderData], list[str]]] = {
    "payment_confirmed": payment_confirmed_variants,
    "preparing": preparing_variants,
    "ready": ready_variants,
}


def get_notification_type_label(notification_type: str) -> str:
    return NOTIFICATION_TYPE_LABELS.get(notification_type, notification_type)


def get_notification_status_label(status: str) -> str:
    return NOTIFICATION_STATUS_LABELS.get(status, status)
