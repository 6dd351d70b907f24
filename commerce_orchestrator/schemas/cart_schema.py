"""Cart line items and the derived cart summary."""

from typing import Optional

from pydantic import BaseModel, Field

from commerce_orchestrator.utils import round_money


class CartItem(BaseModel):
    """A pending purchase line held in session context.

    Name, price and delivery estimate are a snapshot taken when the
    product was first added; later catalog edits do not reprice the cart.
    """
    product_code: str
    name: str
    unit_price: float
    quantity: int = Field(gt=0)
    delivery_days: Optional[int] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class CartSummary(BaseModel):
    """Derived totals for a cart. Never persisted."""
    item_count: int = 0
    subtotal: float = 0.0
    discount: float = 0.0
    discount_percentage: float = 0.0
    total: float = 0.0
    delivery_days: Optional[int] = None

    def rounded(self) -> "CartSummary":
        """Copy with monetary fields rounded half-up to 2 decimals."""
        return self.model_copy(update={
            "subtotal": round_money(self.subtotal),
            "discount": round_money(self.discount),
            "total": round_money(self.total),
        })
