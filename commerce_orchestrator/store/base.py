"""
Narrow read/write surface the orchestrator needs from the relational store.

Two implementations exist: ``SupabaseStore`` (PostgREST over HTTP) for
production and ``MemoryStore`` for tests and the offline console demo.
Both return the pydantic models from ``commerce_orchestrator.schemas``.
"""

from datetime import datetime
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from commerce_orchestrator.schemas.catalog_schema import (
    Product,
    ProductFilters,
    Workshop,
    WorkshopFilters,
)
from commerce_orchestrator.schemas.config_schema import ConfigEntry
from commerce_orchestrator.schemas.order_schema import Order
from commerce_orchestrator.schemas.session_schema import ConversationMessage, Customer


class StoreError(Exception):
    """Raised when the data store cannot complete a read or write."""


class DuplicateOrderNumber(StoreError):
    """Raised when an order number collides with an existing order."""


class SessionRecord(BaseModel):
    """A chatbot session row as stored. ``context`` is the raw JSON blob."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    phone_number: str
    customer_id: Optional[str] = None
    conversation_state: str = "greeting"
    language: str = "en"
    context: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    session_start: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    session_end: Optional[datetime] = None


class DataStore(Protocol):
    """Operations consumed by the session store, config cache and tools."""

    # Customers / sessions
    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]: ...

    async def find_active_session(self, phone: str) -> Optional[SessionRecord]: ...

    async def create_session(
        self, phone: str, customer_id: Optional[str], conversation_state: str
    ) -> SessionRecord: ...

    async def save_session_context(
        self, session_id: str, context: dict[str, Any], last_activity: datetime
    ) -> None: ...

    async def end_session(self, session_id: str, ended_at: datetime) -> None: ...

    # Conversation log
    async def insert_message(self, message: ConversationMessage) -> None: ...

    async def recent_messages(self, session_id: str, limit: int) -> list[ConversationMessage]:
        """Most recent messages of a session, newest first."""
        ...

    # Catalog
    async def search_products(self, filters: ProductFilters, limit: int) -> list[Product]: ...

    async def get_product(self, product_code: str) -> Optional[Product]: ...

    async def search_workshops(self, filters: WorkshopFilters, limit: int) -> list[Workshop]: ...

    # Orders
    async def create_order(self, order: Order) -> Order:
        """Insert the order header and its lines; returns the stored order."""
        ...

    async def get_order(self, order_number: str) -> Optional[Order]: ...

    async def list_customer_orders(self, customer_id: str, limit: int) -> list[Order]:
        """Most recent orders of a customer, newest first."""
        ...

    # Behavioral config
    async def load_config_entries(self) -> list[ConfigEntry]: ...
