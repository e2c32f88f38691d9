"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true"}
_DEFAULT_CACHE_MAX_SIZE = 500
_DEFAULT_CACHE_TTL_SECONDS = 1800
_DEFAULT_PORT = 8000


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in {"dev", "local"}


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def _positive_int_env(name: str, default: int) -> int:
    raw_value = (get_env(name, "") or "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        logger.warning("invalid_int_env name=%s value=%s default=%s", name, raw_value, default)
        return default
    if value <= 0:
        logger.warning("invalid_int_env name=%s value=%s default=%s", name, raw_value, default)
        return default
    return value


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def log_level() -> str:
    """Return the root log level name, INFO when unset."""
    return (get_env("LOG_LEVEL", "INFO") or "INFO").strip().upper() or "INFO"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in {"dev", "local"}:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def transactions_cache_enabled() -> bool:
    """Return whether the transactions response cache is enabled."""
    if app_env().strip().lower() in {"test", "ci"}:
        return False

    raw_value = (get_env("TRANSACTIONS_CACHE_ENABLED", "true") or "").strip().lower()
    return raw_value in _TRUE_VALUES


def transactions_cache_max_size() -> int:
    """Return the maximum number of cached responses."""
    return _positive_int_env("TRANSACTIONS_CACHE_MAX_SIZE", _DEFAULT_CACHE_MAX_SIZE)


def transactions_cache_ttl_seconds() -> int:
    """Return how long a cached response stays valid after being written."""
    return _positive_int_env("TRANSACTIONS_CACHE_TTL_SECONDS", _DEFAULT_CACHE_TTL_SECONDS)


def server_host() -> str:
    return (get_env("HOST", "0.0.0.0") or "0.0.0.0").strip() or "0.0.0.0"


def server_port() -> int:
    return _positive_int_env("PORT", _DEFAULT_PORT)
