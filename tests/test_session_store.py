"""Tests for session resolution, history and context persistence."""

import pytest

from commerce_orchestrator.conversation.session_store import SessionStore, decode_context
from commerce_orchestrator.schemas.session_schema import MessageRole, SessionContext
from commerce_orchestrator.store.base import StoreError
from commerce_orchestrator.store.memory import MemoryStore
from tests.conftest import REGISTERED_PHONE, UNREGISTERED_PHONE, make_item


class FailingMessageStore(MemoryStore):
    async def insert_message(self, message):
        raise StoreError("conversation_logs unavailable")

    async def recent_messages(self, session_id, limit):
        raise StoreError("conversation_logs unavailable")


class TestResolveOrCreateSession:
    def setup_method(self):
        self.store = MemoryStore.with_demo_data()
        self.sessions = SessionStore(self.store)

    @pytest.mark.asyncio
    async def test_registered_identity_links_customer(self):
        session = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        assert session.is_registered
        assert session.customer.name == "Ram Auto Parts"
        assert session.conversation_state == "greeting"
        assert session.context.cart == []

    @pytest.mark.asyncio
    async def test_unknown_identity_is_unregistered(self):
        session = await self.sessions.resolve_or_create_session(UNREGISTERED_PHONE)
        assert not session.is_registered
        assert session.discount_percentage == 0.0

    @pytest.mark.asyncio
    async def test_existing_active_session_reused(self):
        first = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        second = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        assert first.id == second.id
        assert len(self.store.sessions) == 1

    @pytest.mark.asyncio
    async def test_closed_session_replaced_with_new_id(self):
        first = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        await self.sessions.close_session(first.id)
        second = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        assert second.id != first.id
        assert self.store.sessions[first.id].is_active is False
        assert self.store.sessions[first.id].session_end is not None

    @pytest.mark.asyncio
    async def test_persisted_cart_restored(self):
        session = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        await self.sessions.persist_context(session.id, SessionContext(cart=[make_item("P1", quantity=3)]))
        again = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        assert again.context.cart[0].product_code == "P1"
        assert again.context.cart[0].quantity == 3

    @pytest.mark.asyncio
    async def test_persist_bumps_last_activity(self):
        session = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        before = self.store.sessions[session.id].last_activity
        await self.sessions.persist_context(session.id, SessionContext())
        assert self.store.sessions[session.id].last_activity >= before

    @pytest.mark.asyncio
    async def test_inactive_customer_not_linked(self):
        self.store.customers[0] = self.store.customers[0].model_copy(update={"is_active": False})
        session = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        assert not session.is_registered


class TestHistory:
    def setup_method(self):
        self.store = MemoryStore.with_demo_data()
        self.sessions = SessionStore(self.store)

    @pytest.mark.asyncio
    async def test_history_round_trip_order(self):
        session = await self.sessions.resolve_or_create_session(UNREGISTERED_PHONE)
        for text, role in [("A", MessageRole.USER), ("B", MessageRole.ASSISTANT), ("C", MessageRole.USER)]:
            await self.sessions.append_message(session.id, UNREGISTERED_PHONE, None, role, text)

        history = await self.sessions.fetch_history(session.id, 10)
        assert [m.text for m in history] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_history_capped_to_most_recent(self):
        session = await self.sessions.resolve_or_create_session(UNREGISTERED_PHONE)
        for i in range(6):
            await self.sessions.append_message(session.id, UNREGISTERED_PHONE, None, MessageRole.USER, f"m{i}")

        history = await self.sessions.fetch_history(session.id, 3)
        assert [m.text for m in history] == ["m3", "m4", "m5"]

    @pytest.mark.asyncio
    async def test_history_scoped_to_session(self):
        a = await self.sessions.resolve_or_create_session(UNREGISTERED_PHONE)
        b = await self.sessions.resolve_or_create_session(REGISTERED_PHONE)
        await self.sessions.append_message(a.id, UNREGISTERED_PHONE, None, MessageRole.USER, "mine")
        await self.sessions.append_message(b.id, REGISTERED_PHONE, "c-001", MessageRole.USER, "theirs")
        history = await self.sessions.fetch_history(a.id, 10)
        assert [m.text for m in history] == ["mine"]

    @pytest.mark.asyncio
    async def test_append_failure_swallowed(self):
        sessions = SessionStore(FailingMessageStore())
        ok = await sessions.append_message("1", UNREGISTERED_PHONE, None, MessageRole.USER, "hi")
        assert ok is False

    @pytest.mark.asyncio
    async def test_history_failure_returns_empty(self):
        sessions = SessionStore(FailingMessageStore())
        assert await sessions.fetch_history("1", 10) == []


class TestDecodeContext:
    def test_empty_blob(self):
        assert decode_context({}).cart == []
        assert decode_context(None).cart == []

    def test_legacy_blob_without_kind(self):
        context = decode_context({"cart": [{
            "product_code": "P1", "name": "Pad", "unit_price": 10, "quantity": 2,
        }]})
        assert context.kind == "cart"
        assert context.cart[0].quantity == 2

    def test_undecodable_blob_reset(self):
        context = decode_context({"cart": [{"product_code": "P1", "quantity": -1}]})
        assert context.cart == []

    def test_unknown_kind_reset(self):
        assert decode_context({"kind": "checkout", "cart": []}).cart == []
