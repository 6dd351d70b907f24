"""System prompt assembly for one conversation turn."""

import logging
from typing import Any, Mapping, Optional

from commerce_orchestrator.config import BusinessConfig
from commerce_orchestrator.conversation.config_cache import integer, text
from commerce_orchestrator.prompts.system_prompts import (
    CART_REMINDER,
    REGISTERED_BLOCK,
    TOOL_REMINDER,
    UNREGISTERED_NOTICE,
    default_registration_message,
)
from commerce_orchestrator.schemas.config_schema import ConfigKey
from commerce_orchestrator.schemas.session_schema import (
    ConversationMessage,
    Customer,
    MessageRole,
    Session,
)
from commerce_orchestrator.tools import cart_ledger
from commerce_orchestrator.utils import format_money

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_TURNS = 10


def _optional_money(amount: Optional[float]) -> str:
    return format_money(amount) if amount is not None else "N/A"


def build_customer_block(
    session: Session, registration_message: str
) -> str:
    """Registered customer details, or the cannot-order notice for unknown callers."""
    customer: Optional[Customer] = session.customer
    if customer is None:
        return UNREGISTERED_NOTICE.format(
            channel_identity=session.channel_identity,
            registration_message=registration_message,
        )
    return REGISTERED_BLOCK.format(
        name=customer.name,
        customer_code=customer.customer_code or "N/A",
        city=customer.city or "N/A",
        grade=customer.customer_grade or "N/A",
        discount=f"{customer.discount_percentage:g}",
        credit_limit=_optional_money(customer.credit_limit),
        balance=_optional_money(customer.balance_lcy or 0.0),
    )


def build_cart_block(session: Session) -> str:
    """Cart contents and totals; empty string when the cart is empty."""
    cart = session.context.cart
    if not cart:
        return ""

    summary = cart_ledger.summarize(cart, session.discount_percentage).rounded()
    lines = ["CURRENT CART:"]
    for item in cart:
        lines.append(
            f"- {item.name} ({item.product_code}) x{item.quantity} @ {format_money(item.unit_price)}"
        )
    lines.append(f"- Subtotal: {format_money(summary.subtotal)}")
    lines.append(
        f"- Discount: {format_money(summary.discount)} ({summary.discount_percentage:g}%)"
    )
    lines.append(f"- Total: {format_money(summary.total)}")
    if summary.delivery_days is not None:
        lines.append(f"- Estimated delivery: {summary.delivery_days} day(s)")
    return "\n".join(lines) + "\n\n" + CART_REMINDER


def build_history_block(history: list[ConversationMessage], max_turns: int) -> str:
    """Last ``max_turns`` messages as ``Customer:`` / ``You:`` lines."""
    recent = history[-max_turns:] if max_turns > 0 else []
    if not recent:
        return ""
    lines = [f"RECENT CONVERSATION (last {len(recent)} messages):"]
    for message in recent:
        speaker = "Customer" if message.role == MessageRole.USER else "You"
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines) + "\n"


class PromptBuilder:
    """
    Assembles the system prompt in a fixed section order.

    Sections: business context, customer status, cart (if any), recent
    history, personality / flow rules / restrictions, tool reminder.
    Missing config fragments render as empty strings; the tool reminder
    is always present.
    """

    def __init__(self, business: Optional[BusinessConfig] = None) -> None:
        self._business = business or BusinessConfig()

    def build(
        self,
        session: Session,
        history: list[ConversationMessage],
        config: Mapping[str, Any],
    ) -> str:
        registration = text(
            config,
            ConfigKey.REGISTRATION_REQUIRED_MESSAGE,
            default_registration_message(self._business),
        )
        max_turns = integer(config, ConfigKey.MAX_HISTORY_TURNS, DEFAULT_HISTORY_TURNS)

        sections = [
            text(config, ConfigKey.BUSINESS_CONTEXT),
            build_customer_block(session, registration),
            build_cart_block(session),
            build_history_block(history, max_turns),
            text(config, ConfigKey.PERSONALITY),
            text(config, ConfigKey.FLOW_RULES),
            text(config, ConfigKey.RESTRICTIONS),
            TOOL_REMINDER,
        ]
        prompt = "\n\n".join(section.strip() for section in sections if section.strip())
        logger.debug("System prompt built: %d chars, %d history turn(s)", len(prompt), min(len(history), max_turns))
        return prompt
