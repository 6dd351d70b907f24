"""Tests for WhatsApp payload parsing and reply delivery."""

import json

import httpx
import pytest

from commerce_orchestrator.channel.whatsapp import ChannelError, WhatsAppSender, extract_text_message
from commerce_orchestrator.config import ChannelConfig


def _payload(message: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"value": {"messages": [message]}}]}],
    }


class TestExtractTextMessage:
    def test_text_message(self):
        inbound = extract_text_message(_payload({
            "from": "9779851000001", "id": "wamid.1", "type": "text", "text": {"body": "hi"},
        }))
        assert inbound.channel_identity == "9779851000001"
        assert inbound.text == "hi"
        assert inbound.message_id == "wamid.1"

    def test_sender_normalized(self):
        inbound = extract_text_message(_payload({
            "from": "+977 985-1000001", "type": "text", "text": {"body": "hi"},
        }))
        assert inbound.channel_identity == "+9779851000001"

    def test_non_text_ignored(self):
        assert extract_text_message(_payload({"from": "977", "type": "image", "image": {}})) is None

    def test_status_callback_ignored(self):
        payload = {"entry": [{"changes": [{"value": {"statuses": [{"status": "read"}]}}]}]}
        assert extract_text_message(payload) is None

    @pytest.mark.parametrize("payload", [{}, {"entry": []}, {"entry": [{"changes": []}]}, {"entry": "x"}])
    def test_malformed_ignored(self, payload):
        assert extract_text_message(payload) is None

    def test_empty_body_ignored(self):
        assert extract_text_message(_payload({"from": "977", "type": "text", "text": {"body": ""}})) is None


class TestWhatsAppSender:
    def _sender(self, handler) -> WhatsAppSender:
        config = ChannelConfig(
            whatsapp_api_url="https://graph.example.test/v18.0/123/messages",
            whatsapp_api_key="secret-key",
        )
        return WhatsAppSender(config, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_send_text_payload(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

        sender = self._sender(handler)
        result = await sender.send_text("9779851000001", "Namaste")
        await sender.aclose()

        assert result == {"messages": [{"id": "wamid.out"}]}
        request = seen[0]
        assert request.url.path == "/v18.0/123/messages"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert json.loads(request.content) == {
            "messaging_product": "whatsapp",
            "to": "9779851000001",
            "type": "text",
            "text": {"body": "Namaste"},
        }

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        sender = self._sender(lambda request: httpx.Response(401, text="bad token"))
        with pytest.raises(ChannelError, match="401"):
            await sender.send_text("977", "hi")

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        sender = self._sender(handler)
        with pytest.raises(ChannelError, match="send failed"):
            await sender.send_text("977", "hi")
