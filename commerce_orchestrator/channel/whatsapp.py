"""
WhatsApp Cloud API adapter: inbound webhook parsing and outbound text replies.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from commerce_orchestrator.config import ChannelConfig
from commerce_orchestrator.utils import normalize_phone

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Raised when a reply cannot be delivered to the messaging channel."""


@dataclass(frozen=True)
class InboundMessage:
    channel_identity: str
    text: str
    message_id: Optional[str] = None


def extract_text_message(payload: dict[str, Any]) -> Optional[InboundMessage]:
    """
    Pull the first text message out of a webhook payload.

    Status callbacks, non-message events and non-text messages (images,
    audio, locations, ...) return None and are ignored.
    """
    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        logger.debug("Webhook payload without entry/changes/value, ignoring")
        return None

    messages = value.get("messages") if isinstance(value, dict) else None
    if not messages:
        logger.debug("Not a message event, ignoring")
        return None

    message = messages[0]
    if message.get("type") != "text":
        logger.info("Ignoring non-text message of type %s", message.get("type"))
        return None

    sender = message.get("from")
    body = (message.get("text") or {}).get("body")
    if not sender or not body:
        return None
    return InboundMessage(
        channel_identity=normalize_phone(str(sender)),
        text=body,
        message_id=message.get("id"),
    )


class WhatsAppSender:
    """Sends text replies through the WhatsApp Cloud API messages endpoint."""

    def __init__(self, config: ChannelConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        if not config.whatsapp_api_url or not config.whatsapp_api_key:
            logger.warning("WHATSAPP_API_URL or WHATSAPP_API_KEY not set; replies will fail.")
        self._url = config.whatsapp_api_url
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {config.whatsapp_api_key}",
                "Content-Type": "application/json",
            },
            timeout=config.send_timeout_sec,
            transport=transport,
        )

    async def send_text(self, to: str, text: str) -> dict[str, Any]:
        """
        Deliver ``text`` to ``to``.

        Raises:
            ChannelError: On transport failure or a non-2xx response.
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise ChannelError(f"WhatsApp send failed: {exc}") from exc

        if response.is_error:
            raise ChannelError(
                f"WhatsApp send returned {response.status_code}: {response.text}"
            )
        logger.info("WhatsApp message sent")
        return response.json() if response.content else {}

    async def aclose(self) -> None:
        await self._client.aclose()
