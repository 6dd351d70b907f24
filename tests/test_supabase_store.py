"""Tests for the PostgREST-backed store using a mock HTTP transport."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from commerce_orchestrator.schemas.catalog_schema import ProductFilters, WorkshopFilters
from commerce_orchestrator.schemas.order_schema import Order, OrderLine
from commerce_orchestrator.schemas.session_schema import ConversationMessage, MessageRole
from commerce_orchestrator.store.base import DuplicateOrderNumber, StoreError
from commerce_orchestrator.store.supabase import SupabaseStore


class FakePostgrest:
    """Records requests and answers from a per-table queue of responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], list[httpx.Response]] = {}

    def reply(self, method: str, table: str, status: int = 200, body=None) -> None:
        self.responses.setdefault((method, table), []).append(
            httpx.Response(status, json=body if body is not None else [])
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        queue = self.responses.get((request.method, table))
        if not queue:
            return httpx.Response(200, json=[])
        return queue.pop(0)


class TestSupabaseStore:
    def setup_method(self):
        self.api = FakePostgrest()
        self.store = SupabaseStore(
            "https://demo.supabase.co/", "service-key", transport=httpx.MockTransport(self.api)
        )

    @pytest.mark.asyncio
    async def test_auth_headers_and_base_path(self):
        await self.store.find_customer_by_phone("9779851000001")
        request = self.api.requests[0]
        assert request.url.path == "/rest/v1/customers"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Authorization"] == "Bearer service-key"
        assert request.url.params["phone"] == "eq.9779851000001"
        assert request.url.params["is_active"] == "eq.true"

    @pytest.mark.asyncio
    async def test_customer_row_mapped(self):
        self.api.reply("GET", "customers", body=[{
            "id": 42, "name": "Ram Auto Parts", "phone": "9779851000001",
            "base_discount_percentage": 10, "credit_limit": None,
        }])
        customer = await self.store.find_customer_by_phone("9779851000001")
        assert customer.id == "42"
        assert customer.discount_percentage == 10.0

    @pytest.mark.asyncio
    async def test_missing_customer(self):
        assert await self.store.find_customer_by_phone("977") is None

    @pytest.mark.asyncio
    async def test_product_filters_use_ilike(self):
        self.api.reply("GET", "products", body=[{
            "product_code": "BRK-1", "name": "Pad", "unit_price": 2500, "stock_quantity": 3,
        }])
        products = await self.store.search_products(
            ProductFilters(vehicle_make="Toyota", category="brake", keyword="front*pad"), 20
        )
        params = self.api.requests[0].url.params
        assert params["vehicle_make"] == "ilike.*Toyota*"
        assert params["category"] == "ilike.*brake*"
        assert params["limit"] == "20"
        assert params["or"] == '(name.ilike."*frontpad*",description.ilike."*frontpad*")'
        assert products[0].unit_price == 2500.0

    @pytest.mark.asyncio
    async def test_workshop_filters(self):
        await self.store.search_workshops(WorkshopFilters(city="Pokhara"), 10)
        params = self.api.requests[0].url.params
        assert params["city"] == "ilike.*Pokhara*"
        assert "or" not in params

    @pytest.mark.asyncio
    async def test_server_error_raises_store_error(self):
        self.api.reply("GET", "products", status=500, body={"message": "boom"})
        with pytest.raises(StoreError, match="500"):
            await self.store.get_product("BRK-1")

    @pytest.mark.asyncio
    async def test_transport_error_raises_store_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        store = SupabaseStore("https://demo.supabase.co", "k", transport=httpx.MockTransport(handler))
        with pytest.raises(StoreError):
            await store.load_config_entries()

    @pytest.mark.asyncio
    async def test_conflict_raises_duplicate_order_number(self):
        self.api.reply("POST", "orders", status=409, body={"code": "23505"})
        order = Order(
            order_number="ORD-20240101-ABCDEF", customer_id="c-1",
            order_date=datetime.now(timezone.utc), subtotal=10.0, total_amount=10.0,
        )
        with pytest.raises(DuplicateOrderNumber):
            await self.store.create_order(order)

    @pytest.mark.asyncio
    async def test_line_insert_conflict_is_not_an_order_number_collision(self):
        self.api.reply("POST", "orders", status=201, body=[{"id": 7}])
        self.api.reply("POST", "order_items", status=409, body={"code": "23505"})
        order = Order(
            order_number="ORD-20240101-ABCDEF", customer_id="c-1",
            order_date=datetime.now(timezone.utc), subtotal=10.0, total_amount=10.0,
            items=[OrderLine(product_code="P1", quantity=1, unit_price=10.0, line_total=10.0)],
        )

        with pytest.raises(StoreError) as excinfo:
            await self.store.create_order(order)

        assert not isinstance(excinfo.value, DuplicateOrderNumber)
        assert [r.url.path.rsplit("/", 1)[-1] for r in self.api.requests] == ["orders", "order_items"]

    @pytest.mark.asyncio
    async def test_conflict_outside_orders_is_store_error(self):
        self.api.reply("POST", "chatbot_sessions", status=409, body={"code": "23505"})

        with pytest.raises(StoreError) as excinfo:
            await self.store.create_session("9779851069717", None, "greeting")

        assert not isinstance(excinfo.value, DuplicateOrderNumber)

    @pytest.mark.asyncio
    async def test_create_order_writes_header_then_lines(self):
        self.api.reply("POST", "orders", status=201, body=[{"id": 7}])
        self.api.reply("POST", "order_items", status=201, body=[])
        order = Order(
            order_number="ORD-20240101-ABCDEF", customer_id="c-1",
            order_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            subtotal=200.0, discount_percentage=10.0, discount_amount=20.0, total_amount=180.0,
            items=[OrderLine(product_code="P1", quantity=2, unit_price=100.0, line_total=200.0)],
        )

        stored = await self.store.create_order(order)

        assert stored.id == "7"
        header, lines = self.api.requests
        assert json.loads(header.content)["order_number"] == "ORD-20240101-ABCDEF"
        assert json.loads(lines.content) == [{
            "order_id": "7", "product_code": "P1", "quantity": 2,
            "unit_price": 100.0, "line_total": 200.0,
        }]

    @pytest.mark.asyncio
    async def test_get_order_embeds_items(self):
        self.api.reply("GET", "orders", body=[{
            "id": 7, "order_number": "ORD-20240101-ABCDEF", "customer_id": 1,
            "order_date": "2024-01-01T10:00:00+00:00", "subtotal": 200, "total_amount": 180,
            "status": "confirmed", "payment_status": "unpaid", "delivery_days": None,
            "order_items": [{
                "product_code": "P1", "quantity": 2, "unit_price": 100,
                "line_total": 200, "products": {"name": "Brake Pad"},
            }],
        }])
        order = await self.store.get_order("ORD-20240101-ABCDEF")
        assert self.api.requests[0].url.params["select"] == "*,order_items(*,products(name))"
        assert order.customer_id == "1"
        assert order.status.value == "confirmed"
        assert order.items[0].name == "Brake Pad"

    @pytest.mark.asyncio
    async def test_recent_messages_mapping(self):
        self.api.reply("GET", "conversation_logs", body=[
            {"id": 2, "session_id": 5, "phone_number": "977", "message_type": "bot",
             "message_text": "Hello", "timestamp": "2024-01-01T10:00:01+00:00"},
            {"id": 1, "session_id": 5, "phone_number": "977", "message_type": "user",
             "message_text": "hi", "timestamp": "2024-01-01T10:00:00+00:00"},
        ])
        messages = await self.store.recent_messages("5", 10)
        params = self.api.requests[0].url.params
        assert params["order"] == "timestamp.desc"
        assert [m.role for m in messages] == [MessageRole.ASSISTANT, MessageRole.USER]
        assert messages[0].session_id == "5"

    @pytest.mark.asyncio
    async def test_insert_message_columns(self):
        await self.store.insert_message(ConversationMessage(
            session_id="5", channel_identity="977", role=MessageRole.ASSISTANT,
            text="Hello", timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ))
        body = json.loads(self.api.requests[0].content)
        assert body["message_type"] == "assistant"
        assert body["message_text"] == "Hello"
        assert body["phone_number"] == "977"

    @pytest.mark.asyncio
    async def test_session_context_patch(self):
        await self.store.save_session_context(
            "5", {"kind": "cart", "cart": []}, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        request = self.api.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.5"
        assert json.loads(request.content)["context"] == {"kind": "cart", "cart": []}

    @pytest.mark.asyncio
    async def test_create_session_returns_record(self):
        self.api.reply("POST", "chatbot_sessions", status=201, body=[{
            "id": 9, "phone_number": "977", "customer_id": None,
            "conversation_state": "greeting", "context": None, "is_active": True,
        }])
        record = await self.store.create_session("977", None, "greeting")
        assert record.id == "9"
        assert record.context == {}
