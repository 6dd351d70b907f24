"""
HTTP surface: WhatsApp webhook, health check and config reload.

The POST webhook acknowledges immediately and handles the message in a
background task, so the channel never waits on the model.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from commerce_orchestrator.channel.whatsapp import ChannelError, WhatsAppSender, extract_text_message
from commerce_orchestrator.config import AppConfig
from commerce_orchestrator.conversation.orchestrator import ConversationOrchestrator

logger = logging.getLogger(__name__)


async def process_inbound(
    orchestrator: ConversationOrchestrator,
    sender: WhatsAppSender,
    channel_identity: str,
    text: str,
) -> None:
    """Run the turn and deliver the reply. Delivery failures are logged."""
    reply = await orchestrator.handle_message(channel_identity, text)
    try:
        await sender.send_text(channel_identity, reply)
    except ChannelError:
        logger.exception("Reply to %s could not be delivered", channel_identity)


def _tokens_match(given: Optional[str], expected: str) -> bool:
    if not expected or not given:
        return False
    return hmac.compare_digest(given, expected)


def create_app(
    orchestrator: ConversationOrchestrator,
    sender: WhatsAppSender,
    settings: AppConfig,
) -> FastAPI:
    app = FastAPI(
        title=f"{settings.business.name} Chatbot",
        description="WhatsApp commerce assistant webhook",
    )

    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": settings.business.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/whatsapp-webhook", response_class=PlainTextResponse)
    def verify_webhook(
        mode: Optional[str] = Query(None, alias="hub.mode"),
        token: Optional[str] = Query(None, alias="hub.verify_token"),
        challenge: str = Query("", alias="hub.challenge"),
    ):
        if mode == "subscribe" and _tokens_match(token, settings.channel.verify_token):
            logger.info("Webhook verified")
            return challenge
        logger.warning("Webhook verification failed")
        raise HTTPException(status_code=403, detail="Verification failed")

    @app.post("/whatsapp-webhook")
    async def receive_webhook(request: Request, background: BackgroundTasks):
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Webhook body is not JSON, ignoring")
            return {"status": "ignored"}

        inbound = extract_text_message(payload) if isinstance(payload, dict) else None
        if inbound is None:
            return {"status": "ignored"}

        background.add_task(
            process_inbound, orchestrator, sender, inbound.channel_identity, inbound.text
        )
        return {"status": "accepted"}

    @app.post("/admin/config/reload")
    async def reload_config(x_admin_token: Optional[str] = Header(None)):
        if not _tokens_match(x_admin_token, settings.channel.admin_token):
            raise HTTPException(status_code=403, detail="Invalid admin token")
        config = await orchestrator.reload_config()
        return {"status": "reloaded", "keys": len(config)}

    return app
