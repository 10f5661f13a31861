"""
Centralized configuration with environment variable overrides.

API location, timeouts, and wizard behaviour are configurable here.
Nothing is hardcoded in gateway or wizard logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from blyss_booking.logging_context import SESSION_LOG_FORMAT, install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


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


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as 'true', '0' or 'off'."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class ApiConfig:
    """Backend location and transport settings."""

    base_url: str = os.getenv("BLYSS_API_URL", "http://localhost:3001/api")
    timeout_sec: float = _safe_float("API_TIMEOUT_SEC", "20.0")
    auth_token: Optional[str] = os.getenv("BLYSS_AUTH_TOKEN") or None


@dataclass(frozen=True)
class WizardConfig:
    """Booking wizard behaviour."""

    payment_return_url: str = os.getenv(
        "PAYMENT_RETURN_URL", "http://localhost:5173/client/booking/return"
    )
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "€")
    month_cache_size: int = _safe_int("MONTH_CACHE_SIZE", "24")
    use_idempotency_key: bool = _safe_bool("USE_IDEMPOTENCY_KEY", "true")
    first_weekday: int = _safe_int("CALENDAR_FIRST_WEEKDAY", "0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    api: ApiConfig = field(default_factory=ApiConfig)
    wizard: WizardConfig = field(default_factory=WizardConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "Blyss")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not config.api.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"BLYSS_API_URL must be an http(s) URL, got {config.api.base_url!r}"
        )
    if not 0.0 < config.api.timeout_sec <= 120.0:
        raise ValueError(
            f"API_TIMEOUT_SEC must be in (0, 120], got {config.api.timeout_sec}"
        )
    if config.wizard.month_cache_size < 1:
        raise ValueError(
            f"MONTH_CACHE_SIZE must be >= 1, got {config.wizard.month_cache_size}"
        )
    if not 0 <= config.wizard.first_weekday <= 6:
        raise ValueError(
            "CALENDAR_FIRST_WEEKDAY must be between 0 and 6, "
            f"got {config.wizard.first_weekday}"
        )
    if not config.wizard.currency_symbol.strip():
        raise ValueError("CURRENCY_SYMBOL must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=SESSION_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter()
    logger.info("Configuration loaded for '%s' (api=%s)", config.app_name, config.api.base_url)
    return config


# Singleton instance
settings = load_config()
