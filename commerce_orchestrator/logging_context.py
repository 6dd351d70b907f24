"""Per-conversation log correlation.

Every log record emitted while a turn is being processed carries a
``session_key`` attribute: the sender's channel identity with all but the
last four digits masked, so interleaved conversations can be told apart
without writing full phone numbers to the log.

Usage:
    from commerce_orchestrator.logging_context import session_scope

    with session_scope("9779851069717"):
        logger.info("Dispatching tool")  # → [*********9717] Dispatching tool
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_SESSION = "-"
_VISIBLE_DIGITS = 4

_session_key: ContextVar[str] = ContextVar("session_key", default=NO_SESSION)


def mask_identity(channel_identity: str) -> str:
    """Mask a channel identity down to its last four characters."""
    if len(channel_identity) <= _VISIBLE_DIGITS:
        return channel_identity
    hidden = len(channel_identity) - _VISIBLE_DIGITS
    return "*" * hidden + channel_identity[hidden:]


def get_session_key() -> str:
    """The masked identity of the turn running in the current context."""
    return _session_key.get()


@contextmanager
def session_scope(channel_identity: str) -> Iterator[str]:
    """Tag log records with ``channel_identity`` until the block exits."""
    token = _session_key.set(mask_identity(channel_identity))
    try:
        yield _session_key.get()
    finally:
        _session_key.reset(token)


class SessionKeyFilter(logging.Filter):
    """Injects session_key into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_key"):
            record.session_key = _session_key.get()  # type: ignore[attr-defined]
        return True
