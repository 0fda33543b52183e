"""
Environment-driven settings for identity ingestion and HubSpot sync.

Values are read once per process and cached. Tests that change the
environment call reset_settings_cache() afterwards.

Usage:
    from wealthiq.config.settings import get_settings

    settings = get_settings()
    settings.hubspot_min_request_interval_seconds  # 0.1
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

logger = logging.getLogger(__name__)

PRODUCTION_ENVS = frozenset({"production", "prod"})

DEFAULT_HUBSPOT_BASE_URL = "https://api.hubapi.com"

# svix rejects timestamps more than five minutes off on its own, so a wider
# window could never be honored
MAX_WEBHOOK_TOLERANCE_SECONDS = 300

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _get_number(name: str, default: float, cast=float):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        parsed = cast(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
    if parsed < 0:
        raise ValueError(f"{name} must not be negative, got {value!r}")
    return parsed


@dataclass(frozen=True)
class SyncSettings:
    """Immutable snapshot of the sync-related environment."""

    env: str = "development"
    clerk_webhook_secret: Optional[str] = None
    clerk_webhook_tolerance_seconds: int = 300
    allow_unsigned_webhooks: bool = False
    hubspot_api_key: Optional[str] = None
    hubspot_base_url: str = DEFAULT_HUBSPOT_BASE_URL
    hubspot_timeout_seconds: float = 30.0
    hubspot_connect_timeout_seconds: float = 10.0
    hubspot_min_request_interval_seconds: float = 0.1
    backfill_default_limit: int = 50
    backfill_max_limit: int = 100
    sync_lock_ttl_seconds: int = 120
    sync_workers: int = 2

    @property
    def is_production(self) -> bool:
        return self.env.lower() in PRODUCTION_ENVS

    @property
    def webhook_configured(self) -> bool:
        return bool(self.clerk_webhook_secret)

    @property
    def hubspot_configured(self) -> bool:
        return bool(self.hubspot_api_key)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        env = (os.getenv("ENV") or "development").strip().lower()

        allow_unsigned = _get_bool("CLERK_WEBHOOK_ALLOW_UNSIGNED")
        if allow_unsigned and env in PRODUCTION_ENVS:
            logger.error(
                "CLERK_WEBHOOK_ALLOW_UNSIGNED is ignored in production",
                extra={"env": env},
            )
            allow_unsigned = False

        tolerance = _get_number("CLERK_WEBHOOK_TOLERANCE_SECONDS", 300, int)
        if tolerance > MAX_WEBHOOK_TOLERANCE_SECONDS:
            raise ValueError(
                f"CLERK_WEBHOOK_TOLERANCE_SECONDS must be at most "
                f"{MAX_WEBHOOK_TOLERANCE_SECONDS}, got {tolerance}"
            )

        return cls(
            env=env,
            clerk_webhook_secret=os.getenv("CLERK_WEBHOOK_SECRET") or None,
            clerk_webhook_tolerance_seconds=tolerance,
            allow_unsigned_webhooks=allow_unsigned,
            hubspot_api_key=os.getenv("HUBSPOT_API_KEY") or None,
            hubspot_base_url=(
                os.getenv("HUBSPOT_BASE_URL") or DEFAULT_HUBSPOT_BASE_URL
            ).rstrip("/"),
            hubspot_timeout_seconds=_get_number("HUBSPOT_TIMEOUT_SECONDS", 30.0),
            hubspot_connect_timeout_seconds=_get_number(
                "HUBSPOT_CONNECT_TIMEOUT_SECONDS", 10.0
            ),
            hubspot_min_request_interval_seconds=_get_number(
                "HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS", 0.1
            ),
            backfill_default_limit=_get_number("HUBSPOT_BACKFILL_DEFAULT_LIMIT", 50, int),
            backfill_max_limit=_get_number("HUBSPOT_BACKFILL_MAX_LIMIT", 100, int),
            sync_lock_ttl_seconds=_get_number("HUBSPOT_SYNC_LOCK_TTL_SECONDS", 120, int),
            sync_workers=max(1, _get_number("HUBSPOT_SYNC_WORKERS", 2, int)),
        )


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Get the cached settings for this process."""
    return SyncSettings.from_env()


def reset_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
