"""
Tool registry: the closed set of tools the model may call.

Each tool has a name in ``ToolName``, a pydantic input model and a
definition in the tool-call protocol shape (name, description,
input_schema). ``decode_tool_call`` is the only place a model-supplied
tool name is turned into a ``ToolName``; anything outside the set raises
``UnknownToolError`` there, so handlers only ever see known tools.
"""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    SEARCH_PRODUCTS = "search_products"
    SEARCH_WORKSHOPS = "search_workshops"
    ADD_TO_CART = "add_to_cart"
    VIEW_CART = "view_cart"
    PLACE_ORDER = "place_order"
    CHECK_ORDER_STATUS = "check_order_status"
    GET_MY_ORDERS = "get_my_orders"


class UnknownToolError(Exception):
    """Raised when the model requests a tool outside ``ToolName``."""


class _ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SearchProductsInput(_ToolInput):
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    category: Optional[str] = None
    product_code: Optional[str] = None
    brand: Optional[str] = None
    part_number: Optional[str] = None
    keyword: Optional[str] = None


class SearchWorkshopsInput(_ToolInput):
    city: Optional[str] = None
    district: Optional[str] = None
    zone: Optional[str] = None
    keyword: Optional[str] = None


class AddToCartInput(_ToolInput):
    product_code: str = Field(min_length=1)
    quantity: Optional[int] = None


class ViewCartInput(_ToolInput):
    pass


class PlaceOrderInput(_ToolInput):
    pass


class CheckOrderStatusInput(_ToolInput):
    order_number: str = Field(min_length=1)


class GetMyOrdersInput(_ToolInput):
    limit: Optional[int] = None


TOOL_INPUTS: dict[ToolName, type[_ToolInput]] = {
    ToolName.SEARCH_PRODUCTS: SearchProductsInput,
    ToolName.SEARCH_WORKSHOPS: SearchWorkshopsInput,
    ToolName.ADD_TO_CART: AddToCartInput,
    ToolName.VIEW_CART: ViewCartInput,
    ToolName.PLACE_ORDER: PlaceOrderInput,
    ToolName.CHECK_ORDER_STATUS: CheckOrderStatusInput,
    ToolName.GET_MY_ORDERS: GetMyOrdersInput,
}


def _definition(
    name: ToolName,
    description: str,
    properties: dict[str, dict[str, str]],
    required: Optional[list[str]] = None,
) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return {"name": name.value, "description": description, "input_schema": schema}


def _text(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    _definition(
        ToolName.SEARCH_PRODUCTS,
        "Search for vehicle parts. Filter by vehicle make/model, category "
        "(brake, engine, filter, suspension, ...), product code, brand, part "
        "number or keyword. Returns matching products with prices after the "
        "customer's discount and an availability signal.",
        {
            "vehicle_make": _text("Vehicle make/brand (e.g. Toyota, Honda, Hyundai)"),
            "vehicle_model": _text("Vehicle model (e.g. Corolla, Civic, i20)"),
            "category": _text("Product category (e.g. brake, engine, filter, suspension)"),
            "product_code": _text("Exact product code if known"),
            "brand": _text("Part manufacturer brand"),
            "part_number": _text("Manufacturer part number"),
            "keyword": _text("General keyword matched against product name and description"),
        },
    ),
    _definition(
        ToolName.SEARCH_WORKSHOPS,
        "Find vehicle repair workshops/garages by location. Returns workshop "
        "details including owner contact information.",
        {
            "city": _text("City name (e.g. Kathmandu, Pokhara, Lalitpur)"),
            "district": _text("District name"),
            "zone": _text("Zone name"),
            "keyword": _text("Matched against workshop name, address or owner name"),
        },
    ),
    _definition(
        ToolName.ADD_TO_CART,
        "Add a product to the customer's cart. Call this whenever the customer "
        "wants to buy something; adding a product already in the cart "
        "increases its quantity.",
        {
            "product_code": _text("The product code to add (e.g. BRK-TOY-COR-F001)"),
            "quantity": {"type": "integer", "description": "Quantity to add (default: 1)"},
        },
        required=["product_code"],
    ),
    _definition(
        ToolName.VIEW_CART,
        "View the current cart contents with subtotal, discount, total and "
        "delivery estimate.",
        {},
    ),
    _definition(
        ToolName.PLACE_ORDER,
        "Place the order for everything currently in the cart. Use this as soon "
        "as the customer asks to checkout or confirm.",
        {},
    ),
    _definition(
        ToolName.CHECK_ORDER_STATUS,
        "Check the status of an existing order by its order number.",
        {"order_number": _text("The order number (e.g. ORD-20250101-1A2B3C)")},
        required=["order_number"],
    ),
    _definition(
        ToolName.GET_MY_ORDERS,
        "Get the customer's recent orders, newest first.",
        {"limit": {"type": "integer", "description": "Number of recent orders (default: 5)"}},
    ),
]


def get_tool_names() -> list[str]:
    """Return the names of all registered tools."""
    return [tool.value for tool in ToolName]


def decode_tool_call(name: str, raw_input: Optional[dict[str, Any]]) -> tuple[ToolName, _ToolInput]:
    """Resolve a model tool request into a known tool and its validated input.

    Raises:
        UnknownToolError: If the name is not a registered tool.
        pydantic.ValidationError: If the input does not match the tool's schema.
    """
    try:
        tool = ToolName(name)
    except ValueError:
        raise UnknownToolError(
            f"Tool '{name}' not registered. Available: {get_tool_names()}"
        ) from None
    params = TOOL_INPUTS[tool].model_validate(raw_input or {})
    logger.debug("Decoded tool call %s: %s", tool.value, params)
    return tool, params
