"""
Pure cart arithmetic: adding lines, pricing, discounting, delivery estimate.

No I/O and no inventory state. Callers validate stock and minimum-order
rules (see ``inventory.InventoryPolicy``) with fresh product data before
calling ``add_item``. Amounts are left unrounded here; rounding happens
where totals leave the system (``CartSummary.rounded``, order creation).
"""

import logging
from typing import Optional, TypedDict

from commerce_orchestrator.schemas.cart_schema import CartItem, CartSummary
from commerce_orchestrator.schemas.catalog_schema import Product

logger = logging.getLogger(__name__)


class CartError(Exception):
    """A cart mutation was rejected. The message is customer-presentable."""


class InvalidQuantity(CartError):
    """Quantity is zero or negative."""


class BelowMinimum(CartError):
    """Quantity is below the product's minimum order quantity."""


class OutOfStock(CartError):
    """Product stock signal is non-positive."""


class UnitPrice(TypedDict):
    """Per-unit discount breakdown shown next to search results."""

    original_price: float
    discount: float
    discount_percentage: float
    final_price: float


def find_line(cart: list[CartItem], product_code: str) -> Optional[CartItem]:
    """Return the cart line for a product code, if present."""
    for item in cart:
        if item.product_code == product_code:
            return item
    return None


def add_item(cart: list[CartItem], product: Product, quantity: int) -> list[CartItem]:
    """
    Return a new cart with ``quantity`` units of ``product`` added.

    An existing line for the same product code accumulates quantity;
    otherwise a new line is appended with a snapshot of name, price and
    delivery estimate. The input list is not modified.

    Raises:
        InvalidQuantity: If quantity is not positive.
    """
    if quantity <= 0:
        raise InvalidQuantity(f"Quantity must be at least 1, got {quantity}.")

    updated: list[CartItem] = []
    merged = False
    for item in cart:
        if item.product_code == product.product_code:
            updated.append(item.model_copy(update={"quantity": item.quantity + quantity}))
            merged = True
        else:
            updated.append(item.model_copy())

    if not merged:
        updated.append(CartItem(
            product_code=product.product_code,
            name=product.name,
            unit_price=product.unit_price,
            quantity=quantity,
            delivery_days=product.delivery_days,
        ))

    logger.debug(
        "Cart now has %d line(s) after adding %s x%d",
        len(updated), product.product_code, quantity,
    )
    return updated


def summarize(cart: list[CartItem], discount_percentage: float = 0.0) -> CartSummary:
    """Compute subtotal, discount, total and the slowest delivery estimate."""
    subtotal = sum(item.unit_price * item.quantity for item in cart)
    discount = subtotal * discount_percentage / 100
    estimates = [item.delivery_days for item in cart if item.delivery_days is not None]

    return CartSummary(
        item_count=len(cart),
        subtotal=subtotal,
        discount=discount,
        discount_percentage=discount_percentage,
        total=subtotal - discount,
        delivery_days=max(estimates) if estimates else None,
    )


def clear(cart: list[CartItem]) -> list[CartItem]:
    """Empty cart, used after a successful checkout."""
    return []


def price_for(unit_price: float, discount_percentage: float = 0.0) -> UnitPrice:
    """Discount breakdown for one unit at the customer's discount."""
    discount = unit_price * discount_percentage / 100
    return {
        "original_price": unit_price,
        "discount": discount,
        "discount_percentage": discount_percentage,
        "final_price": unit_price - discount,
    }
