"""
Centralized process configuration with environment variable overrides.

Credentials, endpoints, model settings and orchestration limits live here.
Behavioral copy (prompt fragments, message templates) is not process
configuration: it is read from the data store through the ConfigCache.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from commerce_orchestrator.logging_context import SessionKeyFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business identity used in default customer-facing copy."""

    name: str = os.getenv("BUSINESS_NAME", "Satkam Vehicle Parts")
    support_phone: str = os.getenv("SUPPORT_PHONE", "+977 985-1069717")


@dataclass(frozen=True)
class ModelConfig:
    """LLM service settings."""

    api_key: str = os.getenv("ANTHROPIC_API_KEY", os.getenv("CLAUDE_API_KEY", ""))
    llm_model: str = os.getenv("LLM_MODEL", "claude-sonnet-4-20250514")
    max_tokens: int = _safe_int("LLM_MAX_TOKENS", "2048")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    request_timeout_sec: float = _safe_float("LLM_TIMEOUT", "60.0")


@dataclass(frozen=True)
class StoreConfig:
    """Supabase (PostgREST) connection settings."""

    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_KEY", os.getenv("SUPABASE_KEY", ""))
    timeout_sec: float = _safe_float("SUPABASE_TIMEOUT", "30.0")


@dataclass(frozen=True)
class ChannelConfig:
    """WhatsApp Cloud API and webhook secrets."""

    whatsapp_api_url: str = os.getenv("WHATSAPP_API_URL", "")
    whatsapp_api_key: str = os.getenv("WHATSAPP_API_KEY", "")
    verify_token: str = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
    admin_token: str = os.getenv("ADMIN_TOKEN", "")
    send_timeout_sec: float = _safe_float("WHATSAPP_TIMEOUT", "15.0")


@dataclass(frozen=True)
class OrchestratorConfig:
    """Limits for a single conversation turn and its tools."""

    max_tool_rounds: int = _safe_int("MAX_TOOL_ROUNDS", "8")
    config_cache_ttl_sec: float = _safe_float("CONFIG_CACHE_TTL", "300")
    history_fetch_limit: int = _safe_int("HISTORY_FETCH_LIMIT", "50")
    product_search_limit: int = _safe_int("PRODUCT_SEARCH_LIMIT", "20")
    workshop_search_limit: int = _safe_int("WORKSHOP_SEARCH_LIMIT", "10")
    default_order_history: int = _safe_int("DEFAULT_ORDER_HISTORY", "5")
    max_order_history: int = _safe_int("MAX_ORDER_HISTORY", "20")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = _safe_int("PORT", "3000")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 1.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 1.0, got {config.model.llm_temperature}"
        )
    if config.model.max_tokens < 1:
        raise ValueError(f"LLM_MAX_TOKENS must be >= 1, got {config.model.max_tokens}")
    if config.model.request_timeout_sec <= 0:
        raise ValueError(
            f"LLM_TIMEOUT must be > 0, got {config.model.request_timeout_sec}"
        )

    orch = config.orchestrator
    if orch.max_tool_rounds < 1:
        raise ValueError(f"MAX_TOOL_ROUNDS must be >= 1, got {orch.max_tool_rounds}")
    if orch.config_cache_ttl_sec < 0:
        raise ValueError(
            f"CONFIG_CACHE_TTL must be >= 0, got {orch.config_cache_ttl_sec}"
        )

    for limit_name, limit_value in [
        ("HISTORY_FETCH_LIMIT", orch.history_fetch_limit),
        ("PRODUCT_SEARCH_LIMIT", orch.product_search_limit),
        ("WORKSHOP_SEARCH_LIMIT", orch.workshop_search_limit),
        ("DEFAULT_ORDER_HISTORY", orch.default_order_history),
        ("MAX_ORDER_HISTORY", orch.max_order_history),
    ]:
        if limit_value < 1:
            raise ValueError(f"{limit_name} must be >= 1, got {limit_value}")

    if orch.default_order_history > orch.max_order_history:
        raise ValueError(
            "DEFAULT_ORDER_HISTORY must not exceed MAX_ORDER_HISTORY, "
            f"got {orch.default_order_history} > {orch.max_order_history}"
        )

    if not 1 <= config.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(session_key)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionKeyFilter) for f in handler.filters):
            handler.addFilter(SessionKeyFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
