"""Customer, session and conversation-log models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from commerce_orchestrator.schemas.cart_schema import CartItem


class Customer(BaseModel):
    """Business customer resolved from the channel identity."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    customer_code: Optional[str] = None
    name: str
    phone: str
    city: Optional[str] = None
    customer_grade: Optional[str] = None
    base_discount_percentage: Optional[float] = 0.0
    custom_discount_percentage: Optional[float] = None
    use_custom_discount: bool = False
    credit_limit: Optional[float] = None
    balance_lcy: Optional[float] = None
    is_active: bool = True

    @property
    def discount_percentage(self) -> float:
        if self.use_custom_discount and self.custom_discount_percentage is not None:
            return self.custom_discount_percentage
        return self.base_discount_percentage or 0.0


class SessionContext(BaseModel):
    """
    Mutable state carried across turns of one conversation.

    ``kind`` discriminates the context shape so a blob written by one
    version is never silently read as another. Only the cart exists today.
    """
    kind: Literal["cart"] = "cart"
    cart: list[CartItem] = Field(default_factory=list)


class Session(BaseModel):
    """One ongoing conversation with a channel identity."""
    id: str
    channel_identity: str
    customer: Optional[Customer] = None
    context: SessionContext = Field(default_factory=SessionContext)
    conversation_state: str = "greeting"
    language: str = "en"
    is_active: bool = True
    session_start: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    session_end: Optional[datetime] = None

    @property
    def is_registered(self) -> bool:
        return self.customer is not None

    @property
    def discount_percentage(self) -> float:
        return self.customer.discount_percentage if self.customer else 0.0


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """One logged message. Append-only."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    session_id: str
    channel_identity: str
    customer_id: Optional[str] = None
    role: MessageRole
    text: str
    timestamp: datetime
