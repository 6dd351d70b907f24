"""Shared test fixtures and helpers."""

import copy
from typing import Any, Optional, Union

import pytest

from commerce_orchestrator.config import AppConfig
from commerce_orchestrator.llm.client import ModelResponse, ToolInvocation
from commerce_orchestrator.schemas.cart_schema import CartItem
from commerce_orchestrator.schemas.catalog_schema import Product
from commerce_orchestrator.schemas.config_schema import ConfigEntry, ConfigValueType
from commerce_orchestrator.schemas.session_schema import Customer, Session, SessionContext
from commerce_orchestrator.store.memory import MemoryStore

REGISTERED_PHONE = "9779851000001"
UNREGISTERED_PHONE = "9779800000099"


@pytest.fixture
def settings():
    return AppConfig()


@pytest.fixture
def store():
    return MemoryStore.with_demo_data()


def make_product(
    code: str = "BRK-TOY-COR-F001",
    unit_price: float = 100.0,
    stock_quantity: Optional[int] = 10,
    min_order_quantity: Optional[int] = 1,
    delivery_days: Optional[int] = None,
    name: Optional[str] = None,
    **kwargs,
) -> Product:
    """Helper to create a Product with sensible defaults."""
    return Product(
        product_code=code,
        name=name or f"Part {code}",
        unit_price=unit_price,
        stock_quantity=stock_quantity,
        min_order_quantity=min_order_quantity,
        delivery_days=delivery_days,
        **kwargs,
    )


def make_item(
    code: str = "P1",
    unit_price: float = 100.0,
    quantity: int = 1,
    delivery_days: Optional[int] = None,
) -> CartItem:
    return CartItem(
        product_code=code,
        name=f"Part {code}",
        unit_price=unit_price,
        quantity=quantity,
        delivery_days=delivery_days,
    )


def make_customer(
    customer_id: str = "c-100",
    phone: str = REGISTERED_PHONE,
    discount: float = 10.0,
    **kwargs,
) -> Customer:
    return Customer(
        id=customer_id,
        customer_code="CUST-0100",
        name="Test Motors",
        phone=phone,
        base_discount_percentage=discount,
        **kwargs,
    )


def make_session(
    customer: Optional[Customer] = None,
    cart: Optional[list[CartItem]] = None,
    session_id: str = "s-1",
    channel_identity: str = UNREGISTERED_PHONE,
) -> Session:
    """Helper to create a Session; unregistered unless a customer is given."""
    return Session(
        id=session_id,
        channel_identity=customer.phone if customer else channel_identity,
        customer=customer,
        context=SessionContext(cart=cart or []),
    )


def make_config_entry(
    key: str, value: Any, value_type: ConfigValueType = ConfigValueType.STRING
) -> ConfigEntry:
    return ConfigEntry(key=key, value=value, value_type=value_type)


def tool_call(name: str, tool_input: Optional[dict[str, Any]] = None, call_id: str = "toolu_1") -> ModelResponse:
    """A model response requesting a single tool."""
    return ModelResponse.tool_request(ToolInvocation(id=call_id, name=name, input=tool_input or {}))


class ScriptedLLM:
    """Fake model client that replays a fixed list of responses.

    An exception instance in the script is raised instead of returned.
    Every call is recorded with a deep copy of the messages sent.
    """

    def __init__(self, script: list[Union[ModelResponse, Exception]]) -> None:
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse:
        self.calls.append({
            "system_prompt": system_prompt,
            "tools": tools,
            "messages": copy.deepcopy(messages),
        })
        if not self.script:
            raise AssertionError("ScriptedLLM ran out of responses")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


class LoopingLLM:
    """Fake model client that requests the same tool forever."""

    def __init__(self, name: str = "view_cart") -> None:
        self.name = name
        self.calls = 0

    async def complete(self, system_prompt, tools, messages) -> ModelResponse:
        self.calls += 1
        return tool_call(self.name, call_id=f"toolu_{self.calls}")
