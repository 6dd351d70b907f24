"""Scripted console scenarios run end to end over the in-memory store."""

import asyncio
import threading

import pytest

from console_demo import REGISTERED_PHONE, ConsoleSession, KeywordModel
from commerce_orchestrator.llm.client import StopKind


class TestKeywordModel:
    def setup_method(self):
        self.model = KeywordModel()

    @pytest.mark.parametrize("text,tool", [
        ("show me brake pads for Toyota", "search_products"),
        ("any workshops in Pokhara?", "search_workshops"),
        ("add BRK-TOY-COR-F001 x 2", "add_to_cart"),
        ("show my cart", "view_cart"),
        ("checkout", "place_order"),
        ("where is ORD-20240101-ABCDEF?", "check_order_status"),
        ("show my orders", "get_my_orders"),
    ])
    def test_tool_choice(self, text, tool):
        assert self.model._choose_tool(text).name == tool

    def test_quantity_parsed(self):
        invocation = self.model._choose_tool("add FLT-HON-CIV-O010 x 10")
        assert invocation.input == {"product_code": "FLT-HON-CIV-O010", "quantity": 10}

    @pytest.mark.asyncio
    async def test_greeting_without_tool(self):
        response = await self.model.complete("", [], [{"role": "user", "content": "hello"}])
        assert response.stop == StopKind.FINAL


class TestScenarios:
    @pytest.mark.asyncio
    async def test_order_scenario_places_one_order(self, capsys):
        session = ConsoleSession()
        await session.run_scenario("order")

        assert session.phone == REGISTERED_PHONE
        (order,) = session.store.orders.values()
        assert {line.product_code: line.quantity for line in order.items} == {
            "BRK-TOY-COR-F001": 2, "FLT-HON-CIV-O010": 10,
        }
        assert "minimum order quantity of 10" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_browse_scenario_cannot_order(self, capsys):
        session = ConsoleSession()
        await session.run_scenario("browse")

        assert session.store.orders == {}
        assert "register" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_status_scenario(self, capsys):
        session = ConsoleSession()
        await session.run_scenario("status")

        out = capsys.readouterr().out
        assert len(session.store.orders) == 1
        assert "Your recent orders:" in out
        assert "ORD-20240101-ABCDEF not found" in out


class TestInteractive:
    @pytest.mark.asyncio
    async def test_reads_lines_until_quit(self, monkeypatch, capsys):
        lines = iter(["", "show my cart", "quit"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
        session = ConsoleSession()

        await session.run()

        assert len(session.store.messages) == 2
        assert "Session ended." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_waiting_for_input_leaves_loop_free(self, monkeypatch):
        released = threading.Event()

        def blocking_input(prompt=""):
            assert released.wait(timeout=2)
            return "quit"

        async def release():
            await asyncio.sleep(0)
            released.set()

        monkeypatch.setattr("builtins.input", blocking_input)
        await asyncio.gather(ConsoleSession().run(), release())
