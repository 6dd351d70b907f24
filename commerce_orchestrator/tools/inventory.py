"""
Stock policy shared by product search and add-to-cart.

Exact inventory counts never leave this module's callers: search results
carry only the coarse ``Availability`` signal, and cart validation raises
customer-presentable errors without quoting stock figures.
"""

from enum import Enum
from typing import Optional

from commerce_orchestrator.schemas.catalog_schema import Product
from commerce_orchestrator.tools.cart_ledger import BelowMinimum, InvalidQuantity, OutOfStock


class Availability(str, Enum):
    AVAILABLE = "Available"
    CAN_SOURCE = "Not in stock — can source"
    UNKNOWN = "Unknown"


def availability_for(stock_quantity: Optional[int]) -> Availability:
    """Map a raw stock count to the externally visible signal."""
    if stock_quantity is None:
        return Availability.UNKNOWN
    if stock_quantity > 0:
        return Availability.AVAILABLE
    return Availability.CAN_SOURCE


class InventoryPolicy:
    """Validation rules applied before a product quantity enters a cart."""

    def availability(self, product: Product) -> Availability:
        return availability_for(product.stock_quantity)

    def minimum_quantity(self, product: Product) -> int:
        return max(product.min_order_quantity or 1, 1)

    def check_addable(self, product: Product, requested: int, resulting: int) -> None:
        """
        Validate adding ``requested`` units, giving ``resulting`` units on the line.

        Unknown stock is not treated as out of stock. The minimum order
        quantity applies to the line total, so topping up an existing line
        that already meets the minimum is allowed.

        Raises:
            InvalidQuantity: requested is not positive.
            OutOfStock: stock is known and non-positive.
            BelowMinimum: resulting line quantity is under the product minimum.
        """
        if requested <= 0:
            raise InvalidQuantity(f"Quantity must be at least 1, got {requested}.")

        if product.stock_quantity is not None and product.stock_quantity <= 0:
            raise OutOfStock(
                f"{product.name} ({product.product_code}) is not in stock right now. "
                "We can source it on request."
            )

        minimum = self.minimum_quantity(product)
        if resulting < minimum:
            raise BelowMinimum(
                f"{product.name} ({product.product_code}) has a minimum order "
                f"quantity of {minimum}."
            )
