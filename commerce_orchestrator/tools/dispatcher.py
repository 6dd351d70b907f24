"""
Tool dispatcher: executes a model tool request against the store and session.

``dispatch`` is total over tool names. Unknown tools, invalid input, cart
rule violations and lookup misses come back as ``success: False`` results
for the model to relay. Store failures are not caught here; they end the
turn at the orchestrator boundary.

Side effects are limited to the session's cart (``add_to_cart``,
``place_order``) and order writes (``place_order``).
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from commerce_orchestrator.config import AppConfig
from commerce_orchestrator.conversation.config_cache import ConfigCache, text
from commerce_orchestrator.prompts.system_prompts import default_registration_message
from commerce_orchestrator.schemas.cart_schema import CartItem
from commerce_orchestrator.schemas.catalog_schema import Product, ProductFilters, WorkshopFilters
from commerce_orchestrator.schemas.config_schema import ConfigKey
from commerce_orchestrator.schemas.order_schema import Order, OrderLine, OrderStatus, PaymentStatus
from commerce_orchestrator.schemas.session_schema import Session
from commerce_orchestrator.store.base import DataStore, DuplicateOrderNumber, StoreError
from commerce_orchestrator.tools import cart_ledger
from commerce_orchestrator.tools.cart_ledger import CartError
from commerce_orchestrator.tools.inventory import InventoryPolicy
from commerce_orchestrator.tools.registry import (
    AddToCartInput,
    CheckOrderStatusInput,
    GetMyOrdersInput,
    SearchProductsInput,
    SearchWorkshopsInput,
    ToolName,
    UnknownToolError,
    decode_tool_call,
)
from commerce_orchestrator.utils import round_money

logger = logging.getLogger(__name__)

ToolResult = dict[str, Any]
Handler = Callable[[Any, Session], Awaitable[ToolResult]]

_ORDER_NUMBER_ATTEMPTS = 5


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Order number of the form ``ORD-YYYYMMDD-XXXXXX``."""
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def _describe_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"]) or "input"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _order_payload(order: Order) -> dict[str, Any]:
    return {
        "order_number": order.order_number,
        "order_date": order.order_date.isoformat(),
        "total": round_money(order.total_amount),
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "delivery_days": order.delivery_days,
        "items": [line.model_dump() for line in order.items],
    }


def _cart_payload(cart: list[CartItem]) -> list[dict[str, Any]]:
    return [item.model_dump() for item in cart]


class ToolDispatcher:
    """Maps each ``ToolName`` to its handler."""

    def __init__(
        self,
        store: DataStore,
        config_cache: ConfigCache,
        settings: AppConfig,
        policy: Optional[InventoryPolicy] = None,
        order_number_factory: Callable[[], str] = generate_order_number,
    ) -> None:
        self._store = store
        self._config_cache = config_cache
        self._settings = settings
        self._policy = policy or InventoryPolicy()
        self._new_order_number = order_number_factory
        self._handlers: dict[ToolName, Handler] = {
            ToolName.SEARCH_PRODUCTS: self._search_products,
            ToolName.SEARCH_WORKSHOPS: self._search_workshops,
            ToolName.ADD_TO_CART: self._add_to_cart,
            ToolName.VIEW_CART: self._view_cart,
            ToolName.PLACE_ORDER: self._place_order,
            ToolName.CHECK_ORDER_STATUS: self._check_order_status,
            ToolName.GET_MY_ORDERS: self._get_my_orders,
        }

    @property
    def handled_tools(self) -> set[ToolName]:
        return set(self._handlers)

    async def dispatch(
        self, name: str, raw_input: Optional[dict[str, Any]], session: Session
    ) -> ToolResult:
        """
        Execute one tool request for ``session``.

        Returns:
            A result dict with at least a ``success`` flag.

        Raises:
            StoreError: If the data store fails while the tool runs.
        """
        try:
            tool, params = decode_tool_call(name, raw_input)
        except UnknownToolError:
            logger.warning("Model requested unknown tool: %s", name)
            return {"success": False, "message": f"Unknown tool: {name}"}
        except ValidationError as exc:
            logger.info("Invalid input for %s: %s", name, exc.error_count())
            return {
                "success": False,
                "message": f"Invalid input for {name}: {_describe_validation(exc)}",
            }

        logger.info("Dispatching tool: %s", tool.value)
        try:
            return await self._handlers[tool](params, session)
        except CartError as exc:
            logger.info("Cart change rejected by %s: %s", tool.value, exc)
            return {"success": False, "message": str(exc)}

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    def _product_result(self, product: Product, discount_percentage: float) -> dict[str, Any]:
        price = cart_ledger.price_for(product.unit_price, discount_percentage)
        return {
            "product_code": product.product_code,
            "name": product.name,
            "description": product.description,
            "category": product.category,
            "brand": product.brand,
            "vehicle_make": product.vehicle_make,
            "vehicle_model": product.vehicle_model,
            "part_number": product.part_number,
            "availability": self._policy.availability(product).value,
            "min_order_quantity": self._policy.minimum_quantity(product),
            "delivery_days": product.delivery_days,
            "original_price": round_money(price["original_price"]),
            "discount": round_money(price["discount"]),
            "discount_percentage": discount_percentage,
            "final_price": round_money(price["final_price"]),
        }

    async def _search_products(self, params: SearchProductsInput, session: Session) -> ToolResult:
        filters = ProductFilters(**params.model_dump())
        products = await self._store.search_products(
            filters, self._settings.orchestrator.product_search_limit
        )
        discount = session.discount_percentage
        results = [self._product_result(product, discount) for product in products]
        logger.info("search_products matched %d product(s)", len(results))
        return {"success": True, "count": len(results), "products": results}

    async def _search_workshops(self, params: SearchWorkshopsInput, session: Session) -> ToolResult:
        filters = WorkshopFilters(**params.model_dump())
        workshops = await self._store.search_workshops(
            filters, self._settings.orchestrator.workshop_search_limit
        )
        return {
            "success": True,
            "count": len(workshops),
            "workshops": [w.model_dump(exclude={"id", "is_active"}) for w in workshops],
        }

    # ------------------------------------------------------------------ #
    # Cart
    # ------------------------------------------------------------------ #

    async def _add_to_cart(self, params: AddToCartInput, session: Session) -> ToolResult:
        quantity = params.quantity if params.quantity is not None else 1
        product = await self._store.get_product(params.product_code)
        if product is None:
            return {
                "success": False,
                "message": f"Product {params.product_code} not found.",
            }

        cart = session.context.cart
        existing = cart_ledger.find_line(cart, product.product_code)
        resulting = quantity + (existing.quantity if existing else 0)
        self._policy.check_addable(product, quantity, resulting)

        updated = cart_ledger.add_item(cart, product, quantity)
        session.context = session.context.model_copy(update={"cart": updated})

        summary = cart_ledger.summarize(updated, session.discount_percentage).rounded()
        return {
            "success": True,
            "message": f"Added {quantity} x {product.name} to cart.",
            "cart": _cart_payload(updated),
            "summary": summary.model_dump(),
        }

    async def _view_cart(self, params: BaseModel, session: Session) -> ToolResult:
        cart = session.context.cart
        summary = cart_ledger.summarize(cart, session.discount_percentage).rounded()
        return {"success": True, "cart": _cart_payload(cart), "summary": summary.model_dump()}

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #

    async def _place_order(self, params: BaseModel, session: Session) -> ToolResult:
        cart = session.context.cart
        if not cart:
            return {"success": False, "message": "Cart is empty. Cannot place order."}

        if session.customer is None:
            config = await self._config_cache.get()
            message = text(
                config,
                ConfigKey.REGISTRATION_REQUIRED_MESSAGE,
                default_registration_message(self._settings.business),
            )
            return {"success": False, "message": message}

        summary = cart_ledger.summarize(cart, session.discount_percentage).rounded()
        lines = [
            OrderLine(
                product_code=item.product_code,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=round_money(item.line_total),
            )
            for item in cart
        ]

        stored: Optional[Order] = None
        for attempt in range(1, _ORDER_NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=self._new_order_number(),
                customer_id=session.customer.id,
                order_date=datetime.now(timezone.utc),
                subtotal=summary.subtotal,
                discount_percentage=summary.discount_percentage,
                discount_amount=summary.discount,
                total_amount=summary.total,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                delivery_days=summary.delivery_days,
                items=lines,
            )
            try:
                stored = await self._store.create_order(order)
                break
            except DuplicateOrderNumber:
                logger.warning(
                    "Order number %s already taken (attempt %d)", order.order_number, attempt
                )
        if stored is None:
            raise StoreError(f"No unique order number after {_ORDER_NUMBER_ATTEMPTS} attempts")

        session.context = session.context.model_copy(update={"cart": cart_ledger.clear(cart)})
        logger.info("Order placed: %s total=%.2f", stored.order_number, stored.total_amount)
        return {"success": True, **_order_payload(stored)}

    async def _check_order_status(self, params: CheckOrderStatusInput, session: Session) -> ToolResult:
        order = await self._store.get_order(params.order_number.strip())
        if order is None:
            return {"success": False, "message": f"Order {params.order_number} not found."}
        return {"success": True, "order": _order_payload(order)}

    async def _get_my_orders(self, params: GetMyOrdersInput, session: Session) -> ToolResult:
        if session.customer is None:
            return {"success": False, "message": "Customer not found."}

        limits = self._settings.orchestrator
        limit = params.limit if params.limit is not None else limits.default_order_history
        limit = max(1, min(limit, limits.max_order_history))

        orders = await self._store.list_customer_orders(session.customer.id, limit)
        return {
            "success": True,
            "count": len(orders),
            "orders": [_order_payload(order) for order in orders],
        }
