"""Aggregator and provider configuration.

Values come from the environment once, at startup, and are passed into the
aggregator and adapters explicitly. Every setting has a default that lets the
service run offline against the mock provider fallback.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field

from experiences.models import LOCAL_SOURCE

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class ProviderConfig(BaseModel):
    """Settings for one external provider."""

    name: str
    label: str
    base_url: str = "https://mock.turpal.com"
    api_key: str = ""
    timeout: float = Field(30.0, gt=0)
    cache_ttl: int = Field(3600, ge=0)
    enabled: bool = True
    # Real liveness probe instead of trusting the enabled flag alone
    health_probe: bool = False
    health_timeout: float = Field(5.0, gt=0)
    health_cache_ttl: int = Field(60, ge=0)
    mock_fallback: bool = True

    @classmethod
    def from_env(cls, name: str, label: str, prefix: Optional[str] = None) -> "ProviderConfig":
        """Load a provider's settings from ``<PREFIX>_*`` environment variables."""
        prefix = (prefix or name).upper()
        defaults = cls(name=name, label=label)
        return cls(
            name=name,
            label=label,
            base_url=os.getenv(f"{prefix}_BASE_URL") or defaults.base_url,
            api_key=os.getenv(f"{prefix}_API_KEY", defaults.api_key),
            timeout=_env_float(f"{prefix}_TIMEOUT", defaults.timeout),
            cache_ttl=_env_int(f"{prefix}_CACHE_DURATION", defaults.cache_ttl),
            enabled=_env_bool(f"{prefix}_ENABLED", defaults.enabled),
            health_probe=_env_bool(f"{prefix}_HEALTH_PROBE", defaults.health_probe),
            health_timeout=_env_float(f"{prefix}_HEALTH_TIMEOUT", defaults.health_timeout),
            health_cache_ttl=_env_int(f"{prefix}_HEALTH_CACHE_DURATION", defaults.health_cache_ttl),
            mock_fallback=_env_bool(f"{prefix}_MOCK_FALLBACK", defaults.mock_fallback),
        )


class AggregatorConfig(BaseModel):
    """Settings for the aggregation layer and its merged-response cache."""

    list_cache_ttl: int = Field(1800, ge=0)
    default_limit: int = Field(10, gt=0)
    default_window_days: int = Field(14, ge=0)
    default_source: str = LOCAL_SOURCE
    providers: List[ProviderConfig] = Field(default_factory=list)

    def provider(self, name: str) -> Optional[ProviderConfig]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    @classmethod
    def from_env(cls) -> "AggregatorConfig":
        return cls(
            list_cache_ttl=_env_int("EXPERIENCES_CACHE_DURATION", 1800),
            default_limit=_env_int("EXPERIENCES_DEFAULT_LIMIT", 10),
            default_window_days=_env_int("EXPERIENCES_DEFAULT_WINDOW_DAYS", 14),
            default_source=os.getenv("DEFAULT_EXPERIENCE_SOURCE") or LOCAL_SOURCE,
            providers=[
                ProviderConfig.from_env("heavenly_tours", "Heavenly Tours"),
            ],
        )
