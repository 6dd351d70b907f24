"""
Session lifecycle and conversation log on top of the data store.

Resolves a channel identity to its active session (creating one when
needed), replays recent history for prompt construction, appends to the
message log on a best-effort basis and persists the session context.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from commerce_orchestrator.schemas.session_schema import (
    ConversationMessage,
    MessageRole,
    Session,
    SessionContext,
)
from commerce_orchestrator.store.base import DataStore, SessionRecord

logger = logging.getLogger(__name__)

INITIAL_CONVERSATION_STATE = "greeting"


def decode_context(raw: Optional[dict]) -> SessionContext:
    """Decode a stored context blob.

    Older sessions stored ``{}`` or ``{"cart": [...]}`` with no ``kind``;
    both read as a cart context. A blob that cannot be decoded is
    replaced with an empty context.
    """
    if not raw:
        return SessionContext()
    try:
        return SessionContext.model_validate({"kind": "cart", **raw})
    except ValidationError as exc:
        logger.warning("Discarding undecodable session context: %s", exc.error_count())
        return SessionContext()


def encode_context(context: SessionContext) -> dict:
    return context.model_dump(mode="json")


class SessionStore:
    """Session and message-log operations used by the orchestrator."""

    def __init__(self, store: DataStore) -> None:
        self._store = store

    async def resolve_or_create_session(self, channel_identity: str) -> Session:
        """Return the active session for ``channel_identity``, creating one if none exists.

        An identity with no matching customer yields an unregistered session.

        Raises:
            StoreError: If the data store cannot be reached.
        """
        customer = await self._store.find_customer_by_phone(channel_identity)
        record = await self._store.find_active_session(channel_identity)

        if record is None:
            record = await self._store.create_session(
                channel_identity,
                customer.id if customer else None,
                INITIAL_CONVERSATION_STATE,
            )
            logger.info(
                "New session %s (%s)", record.id, "registered" if customer else "unregistered"
            )

        return self._to_session(record, channel_identity, customer)

    @staticmethod
    def _to_session(record: SessionRecord, channel_identity: str, customer) -> Session:
        return Session(
            id=record.id,
            channel_identity=channel_identity,
            customer=customer,
            context=decode_context(record.context),
            conversation_state=record.conversation_state,
            language=record.language,
            is_active=record.is_active,
            session_start=record.session_start,
            last_activity=record.last_activity,
            session_end=record.session_end,
        )

    async def fetch_history(self, session_id: str, limit: int) -> list[ConversationMessage]:
        """Most recent ``limit`` messages, oldest first. Empty on store failure."""
        if limit <= 0:
            return []
        try:
            newest_first = await self._store.recent_messages(session_id, limit)
        except Exception:
            logger.warning("History fetch failed for session %s", session_id, exc_info=True)
            return []
        return list(reversed(newest_first))

    async def append_message(
        self,
        session_id: str,
        channel_identity: str,
        customer_id: Optional[str],
        role: MessageRole,
        text: str,
    ) -> bool:
        """Log one message. Returns False instead of raising if the write fails."""
        message = ConversationMessage(
            session_id=session_id,
            channel_identity=channel_identity,
            customer_id=customer_id,
            role=role,
            text=text,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._store.insert_message(message)
        except Exception:
            logger.warning("Failed to log %s message for session %s", role.value, session_id, exc_info=True)
            return False
        return True

    async def persist_context(self, session_id: str, context: SessionContext) -> None:
        """Overwrite the stored context and bump last activity. Last write wins."""
        await self._store.save_session_context(
            session_id, encode_context(context), datetime.now(timezone.utc)
        )

    async def close_session(self, session_id: str) -> None:
        await self._store.end_session(session_id, datetime.now(timezone.utc))
        logger.info("Session %s closed", session_id)
