"""
In-process data store with the same semantics as the Supabase tables.

Backs the test suite and the offline console demo. Records are held as
pydantic models and copied on the way in and out so callers cannot
mutate stored state by accident.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from commerce_orchestrator.schemas.catalog_schema import (
    Product,
    ProductFilters,
    Workshop,
    WorkshopFilters,
)
from commerce_orchestrator.schemas.config_schema import ConfigEntry, ConfigValueType
from commerce_orchestrator.schemas.order_schema import Order
from commerce_orchestrator.schemas.session_schema import ConversationMessage, Customer
from commerce_orchestrator.store.base import DuplicateOrderNumber, SessionRecord, StoreError

logger = logging.getLogger(__name__)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


class MemoryStore:
    """Dict-backed implementation of the ``DataStore`` protocol."""

    def __init__(
        self,
        customers: Iterable[Customer] = (),
        products: Iterable[Product] = (),
        workshops: Iterable[Workshop] = (),
        config_entries: Iterable[ConfigEntry] = (),
    ) -> None:
        self.customers: list[Customer] = list(customers)
        self.products: dict[str, Product] = {p.product_code: p for p in products}
        self.workshops: list[Workshop] = list(workshops)
        self.config_entries: list[ConfigEntry] = list(config_entries)
        self.sessions: dict[str, SessionRecord] = {}
        self.messages: list[ConversationMessage] = []
        self.orders: dict[str, Order] = {}
        self._ids = itertools.count(1)

    def _next_id(self) -> str:
        return str(next(self._ids))

    # ------------------------------------------------------------------ #
    # Customers / sessions
    # ------------------------------------------------------------------ #

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        for customer in self.customers:
            if customer.phone == phone and customer.is_active:
                return customer.model_copy()
        return None

    async def find_active_session(self, phone: str) -> Optional[SessionRecord]:
        active = [
            s for s in self.sessions.values() if s.phone_number == phone and s.is_active
        ]
        if not active:
            return None
        latest = max(active, key=lambda s: int(s.id))
        return latest.model_copy(deep=True)

    async def create_session(
        self, phone: str, customer_id: Optional[str], conversation_state: str
    ) -> SessionRecord:
        now = datetime.now(timezone.utc)
        record = SessionRecord(
            id=self._next_id(),
            phone_number=phone,
            customer_id=customer_id,
            conversation_state=conversation_state,
            context={},
            is_active=True,
            session_start=now,
            last_activity=now,
        )
        self.sessions[record.id] = record
        return record.model_copy(deep=True)

    async def save_session_context(
        self, session_id: str, context: dict[str, Any], last_activity: datetime
    ) -> None:
        record = self.sessions.get(session_id)
        if record is None:
            raise StoreError(f"Session {session_id} not found")
        record.context = dict(context)
        record.last_activity = last_activity

    async def end_session(self, session_id: str, ended_at: datetime) -> None:
        record = self.sessions.get(session_id)
        if record is None:
            raise StoreError(f"Session {session_id} not found")
        record.is_active = False
        record.session_end = ended_at

    # ------------------------------------------------------------------ #
    # Conversation log
    # ------------------------------------------------------------------ #

    async def insert_message(self, message: ConversationMessage) -> None:
        self.messages.append(message.model_copy(update={"id": self._next_id()}))

    async def recent_messages(self, session_id: str, limit: int) -> list[ConversationMessage]:
        matching = [m for m in self.messages if m.session_id == session_id]
        # Stable sort keeps insertion order for identical timestamps
        matching.sort(key=lambda m: m.timestamp)
        return [m.model_copy() for m in reversed(matching[-limit:])] if limit > 0 else []

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    async def search_products(self, filters: ProductFilters, limit: int) -> list[Product]:
        results = []
        for product in self.products.values():
            if not product.is_active:
                continue
            if filters.product_code and product.product_code != filters.product_code:
                continue
            substring_checks = [
                (filters.vehicle_make, product.vehicle_make),
                (filters.vehicle_model, product.vehicle_model),
                (filters.category, product.category),
                (filters.brand, product.brand),
                (filters.part_number, product.part_number),
            ]
            if any(wanted and not _contains(value, wanted) for wanted, value in substring_checks):
                continue
            if filters.keyword and not (
                _contains(product.name, filters.keyword)
                or _contains(product.description, filters.keyword)
            ):
                continue
            results.append(product.model_copy())
            if len(results) >= limit:
                break
        return results

    async def get_product(self, product_code: str) -> Optional[Product]:
        product = self.products.get(product_code)
        if product is None or not product.is_active:
            return None
        return product.model_copy()

    async def search_workshops(self, filters: WorkshopFilters, limit: int) -> list[Workshop]:
        results = []
        for workshop in self.workshops:
            if not workshop.is_active:
                continue
            substring_checks = [
                (filters.city, workshop.city),
                (filters.district, workshop.district),
                (filters.zone, workshop.zone),
            ]
            if any(wanted and not _contains(value, wanted) for wanted, value in substring_checks):
                continue
            if filters.keyword and not any(
                _contains(value, filters.keyword)
                for value in (workshop.name, workshop.address, workshop.owner_name)
            ):
                continue
            results.append(workshop.model_copy())
            if len(results) >= limit:
                break
        return results

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #

    async def create_order(self, order: Order) -> Order:
        if order.order_number in self.orders:
            raise DuplicateOrderNumber(f"Order number {order.order_number} already exists")
        stored = order.model_copy(deep=True, update={"id": self._next_id()})
        self.orders[stored.order_number] = stored
        logger.debug("Order stored: %s", stored.order_number)
        return stored.model_copy(deep=True)

    async def get_order(self, order_number: str) -> Optional[Order]:
        order = self.orders.get(order_number)
        return order.model_copy(deep=True) if order else None

    async def list_customer_orders(self, customer_id: str, limit: int) -> list[Order]:
        mine = [o for o in self.orders.values() if o.customer_id == customer_id]
        mine.sort(key=lambda o: (o.order_date, int(o.id or 0)), reverse=True)
        return [o.model_copy(deep=True) for o in mine[:limit]]

    # ------------------------------------------------------------------ #
    # Behavioral config
    # ------------------------------------------------------------------ #

    async def load_config_entries(self) -> list[ConfigEntry]:
        return [entry.model_copy() for entry in self.config_entries]

    # ------------------------------------------------------------------ #
    # Demo catalog
    # ------------------------------------------------------------------ #

    @classmethod
    def with_demo_data(cls) -> "MemoryStore":
        """A store pre-loaded with a small vehicle-parts catalog."""
        return cls(
            customers=DEMO_CUSTOMERS,
            products=DEMO_PRODUCTS,
            workshops=DEMO_WORKSHOPS,
            config_entries=DEMO_CONFIG,
        )


DEMO_CUSTOMERS: list[Customer] = [
    Customer(
        id="c-001",
        customer_code="CUST-0001",
        name="Ram Auto Parts",
        phone="9779851000001",
        city="Kathmandu",
        customer_grade="A",
        base_discount_percentage=10.0,
        credit_limit=500000.0,
        balance_lcy=125000.0,
    ),
    Customer(
        id="c-002",
        customer_code="CUST-0002",
        name="Pokhara Motors",
        phone="9779851000002",
        city="Pokhara",
        customer_grade="B",
        base_discount_percentage=5.0,
        custom_discount_percentage=7.5,
        use_custom_discount=True,
        credit_limit=200000.0,
        balance_lcy=0.0,
    ),
]

DEMO_PRODUCTS: list[Product] = [
    Product(
        product_code="BRK-TOY-COR-F001",
        name="Front Brake Pad Set - Toyota Corolla",
        description="Ceramic front brake pads",
        category="brake",
        brand="Bosch",
        vehicle_make="Toyota",
        vehicle_model="Corolla",
        part_number="0986AB1234",
        unit_price=2500.0,
        stock_quantity=40,
        min_order_quantity=1,
        delivery_days=2,
    ),
    Product(
        product_code="BRK-TOY-HIL-R002",
        name="Rear Brake Shoe - Toyota Hilux",
        description="Rear drum brake shoes",
        category="brake",
        brand="Aisin",
        vehicle_make="Toyota",
        vehicle_model="Hilux",
        part_number="K2345",
        unit_price=3200.0,
        stock_quantity=0,
        min_order_quantity=1,
        delivery_days=7,
    ),
    Product(
        product_code="FLT-HON-CIV-O010",
        name="Oil Filter - Honda Civic",
        description="Spin-on oil filter",
        category="filter",
        brand="Honda Genuine",
        vehicle_make="Honda",
        vehicle_model="Civic",
        part_number="15400-PLM-A02",
        unit_price=650.0,
        stock_quantity=200,
        min_order_quantity=10,
        delivery_days=1,
    ),
    Product(
        product_code="SUS-HYU-I20-S004",
        name="Front Shock Absorber - Hyundai i20",
        description="Gas-filled shock absorber",
        category="suspension",
        brand="KYB",
        vehicle_make="Hyundai",
        vehicle_model="i20",
        part_number="339245",
        unit_price=5400.0,
        stock_quantity=None,
        min_order_quantity=2,
        delivery_days=5,
    ),
]

DEMO_WORKSHOPS: list[Workshop] = [
    Workshop(
        id="w-001",
        name="Thamel Auto Care",
        owner_name="Hari Shrestha",
        phone="9779841000011",
        address="Thamel Marg 12",
        city="Kathmandu",
        district="Kathmandu",
        zone="Bagmati",
    ),
    Workshop(
        id="w-002",
        name="Lakeside Garage",
        owner_name="Sita Gurung",
        phone="9779841000022",
        address="Lakeside Road 4",
        city="Pokhara",
        district="Kaski",
        zone="Gandaki",
    ),
]

DEMO_CONFIG: list[ConfigEntry] = [
    ConfigEntry(
        key="business_context",
        value=(
            "You are a helpful assistant for Satkam, a vehicle parts distributor in Nepal. "
            "We sell brake pads, engine parts, filters and suspension parts to retailers, "
            "workshops and mechanics."
        ),
    ),
    ConfigEntry(
        key="personality",
        value="Keep responses short and friendly. Quote prices as 'Rs. 2,500'.",
    ),
    ConfigEntry(
        key="registration_required_message",
        value="Please call +977 985-1069717 to register as a customer before ordering.",
    ),
    ConfigEntry(key="max_history_turns", value="10", value_type=ConfigValueType.NUMBER),
]
