"""
Time-windowed cache of behavioral configuration read from the data store.

The cache object is owned by the orchestrator and handed to the prompt
builder and tool dispatcher. Each reload builds a fresh dict and swaps in
a read-only view of it, so readers always see either the old or the new
mapping in full.
"""

import json
import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from commerce_orchestrator.schemas.config_schema import ConfigEntry, ConfigKey, ConfigValueType
from commerce_orchestrator.store.base import DataStore

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "1", "yes", "on"}

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def decode_value(entry: ConfigEntry) -> Any:
    """Decode a raw config value according to its declared type.

    Raises:
        ValueError: If the value cannot be decoded as the declared type.
    """
    value = entry.value
    if value is None:
        return None

    if entry.value_type == ConfigValueType.NUMBER:
        if isinstance(value, bool):
            raise ValueError(f"Config '{entry.key}' is a boolean, expected a number")
        number = float(value)
        return int(number) if number.is_integer() else number

    if entry.value_type == ConfigValueType.BOOLEAN:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_WORDS

    if entry.value_type in (ConfigValueType.JSON, ConfigValueType.STRUCTURED):
        if isinstance(value, str):
            return json.loads(value)
        return value

    return value if isinstance(value, str) else str(value)


def text(config: Mapping[str, Any], key: ConfigKey, default: str = "") -> str:
    """Read a text fragment; missing or empty values yield ``default``."""
    value = config.get(key.value)
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def integer(config: Mapping[str, Any], key: ConfigKey, default: int) -> int:
    """Read a positive integer setting; anything unusable yields ``default``."""
    value = config.get(key.value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class ConfigCache:
    """Config mapping reloaded from the store at most once per TTL window."""

    def __init__(
        self,
        store: DataStore,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._mapping: Mapping[str, Any] = _EMPTY
        self._loaded_at: Optional[float] = None

    @property
    def loaded_at(self) -> Optional[float]:
        return self._loaded_at

    def _is_fresh(self) -> bool:
        if self._loaded_at is None:
            return False
        return self._clock() - self._loaded_at < self._ttl

    async def get(self) -> Mapping[str, Any]:
        """Return the cached mapping, reloading it if the window has passed."""
        if self._is_fresh():
            return self._mapping
        return await self._reload()

    async def force_reload(self) -> Mapping[str, Any]:
        """Reload unconditionally, e.g. after an administrator edits config."""
        self.invalidate()
        return await self._reload()

    def invalidate(self) -> None:
        self._loaded_at = None

    async def _reload(self) -> Mapping[str, Any]:
        try:
            entries = await self._store.load_config_entries()
        except Exception:
            logger.exception(
                "Config reload failed; keeping last good config (%d keys)", len(self._mapping)
            )
            return self._mapping

        decoded: dict[str, Any] = {}
        for entry in entries:
            try:
                decoded[entry.key] = decode_value(entry)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping config '%s' (%s): %s", entry.key, entry.value_type.value, exc)

        self._mapping = MappingProxyType(decoded)
        self._loaded_at = self._clock()
        logger.info("Config loaded: %d keys", len(decoded))
        return self._mapping
