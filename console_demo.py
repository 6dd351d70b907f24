"""
Offline console demo: runs full shopping conversations without any API keys.

Uses the real orchestrator, tool dispatcher, cart ledger and prompt
builder over the in-memory demo catalog. The model is replaced by a
keyword-driven stand-in that requests the same tools a real model would
and phrases a reply from the tool results. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --phone 9779851000001
    python console_demo.py --scenario order
"""

import argparse
import asyncio
import json
import re
import uuid
from typing import Any, Optional

from commerce_orchestrator.config import settings
from commerce_orchestrator.conversation.orchestrator import ConversationOrchestrator
from commerce_orchestrator.llm.client import ModelResponse, ToolInvocation
from commerce_orchestrator.store.memory import MemoryStore

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

UNREGISTERED_PHONE = "9779800000099"
REGISTERED_PHONE = "9779851000001"

_PRODUCT_CODE = re.compile(r"\b[A-Z]{3}-[A-Z0-9]{3}-[A-Z0-9]{3}-[A-Z0-9]{4}\b")
_ORDER_NUMBER = re.compile(r"\bORD-[0-9]{8}-[0-9A-F]{6}\b", re.IGNORECASE)
_QUANTITY = re.compile(r"\bx\s*(\d+)\b|\b(\d+)\s*(?:pcs|pieces|units|sets)\b", re.IGNORECASE)

_MAKES = ["toyota", "honda", "hyundai", "suzuki", "mahindra", "tata"]
_CATEGORIES = {"brake": "brake", "filter": "filter", "shock": "suspension",
               "suspension": "suspension", "engine": "engine"}
_CITIES = ["kathmandu", "pokhara", "lalitpur", "bhaktapur", "chitwan"]


def _invocation(name: str, tool_input: Optional[dict[str, Any]] = None) -> ToolInvocation:
    return ToolInvocation(id=f"toolu_{uuid.uuid4().hex[:12]}", name=name, input=tool_input or {})


class KeywordModel:
    """Stand-in for the LLM that maps keywords in the customer message to tool calls."""

    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse:
        last = messages[-1]["content"]
        if isinstance(last, list):
            results = [json.loads(block["content"]) for block in last]
            return ModelResponse.final(*(self._describe(r) for r in results))

        invocation = self._choose_tool(last)
        if invocation is None:
            return ModelResponse.final(
                f"Namaste! Welcome to {settings.business.name}. Tell me your vehicle and "
                "the part you need, or ask for workshops near you."
            )
        return ModelResponse.tool_request(invocation)

    def _choose_tool(self, text: str) -> Optional[ToolInvocation]:
        lower = text.lower()

        if "workshop" in lower or "garage" in lower:
            city = next((c.title() for c in _CITIES if c in lower), None)
            return _invocation("search_workshops", {"city": city} if city else {})

        if any(w in lower for w in ["checkout", "place order", "confirm"]):
            return _invocation("place_order")

        order_number = _ORDER_NUMBER.search(text)
        if order_number:
            return _invocation("check_order_status", {"order_number": order_number.group(0).upper()})

        if "my orders" in lower or "order history" in lower:
            return _invocation("get_my_orders", {"limit": 5})

        if "cart" in lower and "add" not in lower:
            return _invocation("view_cart")

        code = _PRODUCT_CODE.search(text.upper())
        if code and ("add" in lower or "buy" in lower or "take" in lower):
            quantity = _QUANTITY.search(text)
            tool_input: dict[str, Any] = {"product_code": code.group(0)}
            if quantity:
                tool_input["quantity"] = int(quantity.group(1) or quantity.group(2))
            return _invocation("add_to_cart", tool_input)

        filters: dict[str, Any] = {}
        make = next((m for m in _MAKES if m in lower), None)
        if make:
            filters["vehicle_make"] = make.title()
        category = next((v for k, v in _CATEGORIES.items() if k in lower), None)
        if category:
            filters["category"] = category
        if code:
            filters["product_code"] = code.group(0)
        if filters:
            return _invocation("search_products", filters)
        return None

    def _describe(self, result: dict[str, Any]) -> str:
        if not result.get("success"):
            return f"Sorry, {result.get('message', 'that did not work')}"

        if "products" in result:
            if not result["products"]:
                return "We don't have that part right now. Try another make or category?"
            lines = [f"Found {result['count']} product(s):"]
            for p in result["products"]:
                lines.append(
                    f"- {p['name']} ({p['product_code']}): Rs. {p['final_price']:,.2f} "
                    f"[{p['availability']}]"
                )
            return "\n".join(lines)

        if "workshops" in result:
            if not result["workshops"]:
                return "No workshops found there yet."
            lines = [f"Found {result['count']} workshop(s):"]
            for w in result["workshops"]:
                lines.append(f"- {w['name']}, {w['address']} ({w['owner_name']}, {w['phone']})")
            return "\n".join(lines)

        if "order_number" in result:
            return (
                f"Order confirmed! Order #{result['order_number']}. "
                f"Total: Rs. {result['total']:,.2f}. "
                f"Estimated delivery: {result['delivery_days']} day(s)."
            )

        if "orders" in result:
            if not result["orders"]:
                return "You have no orders yet."
            lines = ["Your recent orders:"]
            for o in result["orders"]:
                lines.append(f"- {o['order_number']}: Rs. {o['total']:,.2f} ({o['status']})")
            return "\n".join(lines)

        if "order" in result:
            order = result["order"]
            return f"Order {order['order_number']} is {order['status']} (payment {order['payment_status']})."

        if "cart" in result:
            summary = result["summary"]
            if not result["cart"]:
                return "Your cart is empty."
            lines = [result.get("message") or "Your cart:"]
            for item in result["cart"]:
                lines.append(f"- {item['name']} x{item['quantity']}")
            lines.append(
                f"Total: Rs. {summary['total']:,.2f} after {summary['discount_percentage']:g}% discount."
            )
            return "\n".join(lines)

        return "Done."


class ConsoleSession:
    """Drives the orchestrator from the terminal."""

    SCENARIOS: dict[str, tuple[str, list[str]]] = {
        "browse": (UNREGISTERED_PHONE, [
            "show me brake pads for Toyota",
            "any workshops in Pokhara?",
            "add BRK-TOY-COR-F001",
            "checkout",
        ]),
        "order": (REGISTERED_PHONE, [
            "I need brake pads for Toyota",
            "add BRK-TOY-COR-F001 x 2",
            "add FLT-HON-CIV-O010 x 5",
            "add FLT-HON-CIV-O010 x 10",
            "show my cart",
            "checkout",
        ]),
        "status": (REGISTERED_PHONE, [
            "add SUS-HYU-I20-S004 x 2",
            "checkout",
            "show my orders",
            "where is ORD-20240101-ABCDEF?",
        ]),
    }

    MAX_INPUT_LENGTH = 1000

    def __init__(self, phone: str = UNREGISTERED_PHONE) -> None:
        self.phone = phone
        self.store = MemoryStore.with_demo_data()
        self.orchestrator = ConversationOrchestrator(self.store, KeywordModel(), settings)

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Assistant]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  COMMERCE ORCHESTRATOR - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}  Phone: {self.phone}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def _turn(self, text: str) -> None:
        reply = await self.orchestrator.handle_message(self.phone, text)
        self.agent_say(reply)
        session = await self.store.find_active_session(self.phone)
        cart = (session.context.get("cart") if session else None) or []
        self.system_log(f"Cart lines: {len(cart)} | Orders stored: {len(self.store.orders)}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        if scenario not in self.SCENARIOS:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        self.phone, steps = self.SCENARIOS[scenario]
        self._banner(f"Scenario: {scenario}")

        for step in steps:
            print(f"\n{BLUE}[Customer] {RESET}{step}")
            await self._turn(step)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo (type 'quit' to exit)")
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That message is too long. Could you shorten it?")
                continue
            await self._turn(user_input)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument(
        "--phone",
        default=UNREGISTERED_PHONE,
        help=f"Channel identity to chat as (registered demo customer: {REGISTERED_PHONE})",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession(phone=args.phone)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
