"""Order records created at checkout."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    UNPAID = "unpaid"
    PARTIAL = "partial"
    REFUNDED = "refunded"


class OrderLine(BaseModel):
    """A line item mirrored from the cart at order time."""
    product_code: str
    name: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float


class Order(BaseModel):
    """Order header plus its lines. The orchestrator never mutates it after creation."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    order_number: str
    customer_id: str
    order_date: datetime
    subtotal: float
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    total_amount: float
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    delivery_days: Optional[int] = None
    items: list[OrderLine] = Field(default_factory=list)
