"""
Supabase data store accessed through its PostgREST HTTP API.

Table layout (all rows carry an ``is_active`` flag where relevant):
    customers, chatbot_sessions, conversation_logs, products, workshops,
    orders, order_items, chatbot_config
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from commerce_orchestrator.schemas.catalog_schema import (
    Product,
    ProductFilters,
    Workshop,
    WorkshopFilters,
)
from commerce_orchestrator.schemas.config_schema import ConfigEntry
from commerce_orchestrator.schemas.order_schema import Order, OrderLine
from commerce_orchestrator.schemas.session_schema import (
    ConversationMessage,
    Customer,
    MessageRole,
)
from commerce_orchestrator.store.base import DuplicateOrderNumber, SessionRecord, StoreError

logger = logging.getLogger(__name__)

# Characters with meaning inside PostgREST filter expressions
_RESERVED = str.maketrans("", "", '*,()"\\')


def _term(value: str) -> str:
    return value.translate(_RESERVED).strip()


def _ilike(value: str) -> str:
    return f"ilike.*{_term(value)}*"


def _any_ilike(columns: list[str], value: str) -> str:
    term = _term(value)
    return "(" + ",".join(f'{col}.ilike."*{term}*"' for col in columns) + ")"


class SupabaseStore:
    """``DataStore`` implementation over the Supabase REST endpoint."""

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not url or not key:
            logger.warning("SUPABASE_URL or SUPABASE_SERVICE_KEY not set.")
        self._client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        conflict_error: type[StoreError] = StoreError,
    ) -> list[dict[str, Any]]:
        try:
            response = await self._client.request(method, f"/{table}", params=params, json=json)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {table} failed: {exc}") from exc

        if response.status_code == 409:
            raise conflict_error(f"{method} {table} conflict: {response.text}")
        if response.is_error:
            raise StoreError(
                f"{method} {table} returned {response.status_code}: {response.text}"
            )
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _select(self, table: str, **params: str) -> list[dict[str, Any]]:
        params.setdefault("select", "*")
        return await self._request("GET", table, params=params)

    # ------------------------------------------------------------------ #
    # Customers / sessions
    # ------------------------------------------------------------------ #

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        rows = await self._select(
            "customers", phone=f"eq.{phone}", is_active="eq.true", limit="1"
        )
        return Customer.model_validate(rows[0]) if rows else None

    async def find_active_session(self, phone: str) -> Optional[SessionRecord]:
        rows = await self._select(
            "chatbot_sessions",
            phone_number=f"eq.{phone}",
            is_active="eq.true",
            order="id.desc",
            limit="1",
        )
        return _session_record(rows[0]) if rows else None

    async def create_session(
        self, phone: str, customer_id: Optional[str], conversation_state: str
    ) -> SessionRecord:
        rows = await self._request("POST", "chatbot_sessions", json={
            "phone_number": phone,
            "customer_id": customer_id,
            "conversation_state": conversation_state,
            "language": "en",
            "context": {},
            "is_active": True,
        })
        if not rows:
            raise StoreError("Session insert returned no row")
        return _session_record(rows[0])

    async def save_session_context(
        self, session_id: str, context: dict[str, Any], last_activity: datetime
    ) -> None:
        await self._request(
            "PATCH",
            "chatbot_sessions",
            params={"id": f"eq.{session_id}"},
            json={"context": context, "last_activity": last_activity.isoformat()},
        )

    async def end_session(self, session_id: str, ended_at: datetime) -> None:
        await self._request(
            "PATCH",
            "chatbot_sessions",
            params={"id": f"eq.{session_id}"},
            json={"is_active": False, "session_end": ended_at.isoformat()},
        )

    # ------------------------------------------------------------------ #
    # Conversation log
    # ------------------------------------------------------------------ #

    async def insert_message(self, message: ConversationMessage) -> None:
        await self._request("POST", "conversation_logs", json={
            "session_id": message.session_id,
            "phone_number": message.channel_identity,
            "customer_id": message.customer_id,
            "message_type": message.role.value,
            "message_text": message.text,
            "timestamp": message.timestamp.isoformat(),
            "language": "en",
        })

    async def recent_messages(self, session_id: str, limit: int) -> list[ConversationMessage]:
        rows = await self._select(
            "conversation_logs",
            session_id=f"eq.{session_id}",
            order="timestamp.desc",
            limit=str(limit),
        )
        return [_message(row) for row in rows]

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    async def search_products(self, filters: ProductFilters, limit: int) -> list[Product]:
        params: dict[str, str] = {"is_active": "eq.true", "limit": str(limit)}
        for column in ("vehicle_make", "vehicle_model", "category", "brand", "part_number"):
            value = getattr(filters, column)
            if value:
                params[column] = _ilike(value)
        if filters.product_code:
            params["product_code"] = f"eq.{filters.product_code}"
        if filters.keyword:
            params["or"] = _any_ilike(["name", "description"], filters.keyword)

        logger.debug("Searching products with %s", params)
        rows = await self._select("products", **params)
        return [Product.model_validate(row) for row in rows]

    async def get_product(self, product_code: str) -> Optional[Product]:
        rows = await self._select(
            "products", product_code=f"eq.{product_code}", is_active="eq.true", limit="1"
        )
        return Product.model_validate(rows[0]) if rows else None

    async def search_workshops(self, filters: WorkshopFilters, limit: int) -> list[Workshop]:
        params: dict[str, str] = {"is_active": "eq.true", "limit": str(limit)}
        for column in ("city", "district", "zone"):
            value = getattr(filters, column)
            if value:
                params[column] = _ilike(value)
        if filters.keyword:
            params["or"] = _any_ilike(["name", "address", "owner_name"], filters.keyword)

        rows = await self._select("workshops", **params)
        return [Workshop.model_validate(row) for row in rows]

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #

    async def create_order(self, order: Order) -> Order:
        rows = await self._request("POST", "orders", conflict_error=DuplicateOrderNumber, json={
            "order_number": order.order_number,
            "customer_id": order.customer_id,
            "order_date": order.order_date.isoformat(),
            "subtotal": order.subtotal,
            "discount_percentage": order.discount_percentage,
            "discount_amount": order.discount_amount,
            "total_amount": order.total_amount,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "delivery_days": order.delivery_days,
        })
        if not rows:
            raise StoreError("Order insert returned no row")
        order_id = str(rows[0]["id"])

        await self._request("POST", "order_items", json=[
            {
                "order_id": order_id,
                "product_code": line.product_code,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": line.line_total,
            }
            for line in order.items
        ])
        logger.info("Order created: %s", order.order_number)
        return order.model_copy(update={"id": order_id})

    async def get_order(self, order_number: str) -> Optional[Order]:
        rows = await self._select(
            "orders",
            select="*,order_items(*,products(name))",
            order_number=f"eq.{order_number}",
            limit="1",
        )
        return _order(rows[0]) if rows else None

    async def list_customer_orders(self, customer_id: str, limit: int) -> list[Order]:
        rows = await self._select(
            "orders",
            select="*,order_items(*,products(name))",
            customer_id=f"eq.{customer_id}",
            order="order_date.desc",
            limit=str(limit),
        )
        return [_order(row) for row in rows]

    # ------------------------------------------------------------------ #
    # Behavioral config
    # ------------------------------------------------------------------ #

    async def load_config_entries(self) -> list[ConfigEntry]:
        rows = await self._select("chatbot_config", select="key,value,value_type,description")
        return [ConfigEntry.model_validate(row) for row in rows]


# ---------------------------------------------------------------------- #
# Row mapping
# ---------------------------------------------------------------------- #

def _session_record(row: dict[str, Any]) -> SessionRecord:
    return SessionRecord.model_validate({
        **row,
        "id": str(row["id"]),
        "customer_id": str(row["customer_id"]) if row.get("customer_id") else None,
        "context": row.get("context") or {},
    })


def _message(row: dict[str, Any]) -> ConversationMessage:
    # Older rows log the assistant side as "bot"
    role = MessageRole.USER if row.get("message_type") == "user" else MessageRole.ASSISTANT
    return ConversationMessage(
        id=str(row["id"]) if row.get("id") is not None else None,
        session_id=str(row["session_id"]),
        channel_identity=row.get("phone_number", ""),
        customer_id=str(row["customer_id"]) if row.get("customer_id") else None,
        role=role,
        text=row.get("message_text") or "",
        timestamp=row.get("timestamp") or datetime.now(timezone.utc),
    )


def _order(row: dict[str, Any]) -> Order:
    lines = [
        OrderLine(
            product_code=item["product_code"],
            name=(item.get("products") or {}).get("name"),
            quantity=item["quantity"],
            unit_price=item["unit_price"],
            line_total=item.get("line_total", item["unit_price"] * item["quantity"]),
        )
        for item in row.get("order_items") or []
    ]
    fields = {k: v for k, v in row.items() if k != "order_items" and v is not None}
    fields["id"] = str(row["id"]) if row.get("id") is not None else None
    fields["customer_id"] = str(row["customer_id"])
    fields.setdefault("subtotal", row.get("total_amount", 0.0))
    return Order.model_validate({**fields, "items": lines})
