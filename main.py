"""
WhatsApp commerce assistant entry point.

Wires the Supabase store, the Anthropic model client and the WhatsApp
sender into the conversation orchestrator and serves the webhook.
Console mode runs the offline demo instead.

Usage:
    Webhook server: python main.py serve
    Console mode:   python main.py console [--scenario browse|order|status]
"""

import logging
import sys

from commerce_orchestrator.config import settings

logger = logging.getLogger(__name__)


def build_app():
    """Build the FastAPI app over the production collaborators."""
    from commerce_orchestrator.channel.webhook import create_app
    from commerce_orchestrator.channel.whatsapp import WhatsAppSender
    from commerce_orchestrator.conversation.orchestrator import ConversationOrchestrator
    from commerce_orchestrator.llm.client import AnthropicLLM
    from commerce_orchestrator.store.supabase import SupabaseStore

    store = SupabaseStore(
        settings.store.supabase_url,
        settings.store.supabase_key,
        timeout=settings.store.timeout_sec,
    )
    orchestrator = ConversationOrchestrator(store, AnthropicLLM(settings.model), settings)
    sender = WhatsAppSender(settings.channel)
    return create_app(orchestrator, sender, settings)


def _run_server() -> None:
    """Start the webhook server (requires Supabase, Anthropic and WhatsApp credentials)."""
    import uvicorn

    logger.info("Starting webhook server on %s:%d", settings.host, settings.port)
    uvicorn.run(build_app(), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    console_main(argv)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        _run_server()
