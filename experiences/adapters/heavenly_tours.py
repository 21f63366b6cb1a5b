"""Heavenly Tours provider adapter.

Upstream endpoints (all GET, bearer auth):
    /api/tours                          listing, date range + pagination
    /api/tours/{id}                     single tour
    /api/tour-prices?tour_id={id}       price list for a tour
    /api/tours/{id}/availability?date=  bookability on one date
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as ModelValidationError

from exceptions import ProviderError
from experiences.adapters.base import (
    DateLike,
    ExperienceId,
    SourceAdapter,
    pagination,
    validate_date_range,
)
from experiences.cache import MISS, TTLCache, as_date, cache_key
from experiences.config import ProviderConfig
from experiences.models import Availability, Experience, ExperienceDetails
from experiences.normalizers.heavenly_tours import (
    normalize_availability,
    normalize_tour_details,
    normalize_tours,
    placeholder_experiences,
)
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

# Failures that turn into an empty or negative result instead of an exception
UPSTREAM_ERRORS = (ProviderError, httpx.HTTPError, ValueError)

# Canonical ids handed out in listings stay resolvable for this long
NATIVE_ID_TTL = 24 * 3600
NATIVE_ID_LIMIT = 10_000


class HeavenlyToursAdapter(SourceAdapter):
    def __init__(
        self,
        config: ProviderConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._cache: TTLCache[Any] = TTLCache(config.name, default_ttl=config.cache_ttl, clock=clock)
        self._health_cache: TTLCache[bool] = TTLCache(
            f"{config.name}_health", default_ttl=config.health_cache_ttl, clock=clock
        )
        # canonical id -> native id, filled as tours are normalized
        self._native_ids: TTLCache[str] = TTLCache(
            f"{config.name}_ids", default_ttl=NATIVE_ID_TTL, clock=clock, max_entries=NATIVE_ID_LIMIT
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self.config.timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        url = f"{self.config.base_url.rstrip('/')}{path}"
        async with httpx.AsyncClient(timeout=timeout or self.config.timeout) as client:
            response = await client.get(url, params=params, headers=self._headers())
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    f"{self.label} returned HTTP {e.response.status_code}",
                    detail={"path": path, "upstream_status": e.response.status_code},
                    provider=self.name,
                ) from e
            return response.json()

    def _log_upstream_error(self, operation: str, error: BaseException, **context: Any) -> None:
        status = None
        if isinstance(error, ProviderError) and error.detail:
            status = error.detail.get("upstream_status")
        safe_msg = redact_secrets_from_text(str(error))
        logger.warning(
            f"[{self.name}] {operation} failed status={status}: {type(error).__name__}: {safe_msg}",
            extra={"source": self.name, "operation": operation, "upstream_status": status, **context},
        )

    def _remember(self, experiences: List[Experience]) -> None:
        for experience in experiences:
            if experience.provider_id:
                self._native_ids.put(cache_key("native_id", experience.id), experience.provider_id)

    def _native_id(self, experience_id: ExperienceId) -> Optional[str]:
        text = str(experience_id).strip()
        if not text:
            return None
        if text.isdigit():
            native_id = self._native_ids.get(cache_key("native_id", int(text)))
            if native_id is not MISS:
                return native_id
        return text

    def _fallback(self) -> List[Experience]:
        if not self.config.mock_fallback:
            return []
        logger.info(f"[{self.name}] Serving placeholder listing")
        return placeholder_experiences(source=self.name, label=self.label)

    async def list_experiences(
        self,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Experience]:
        validate_date_range(start_date, end_date)
        key = cache_key("list", as_date(start_date), as_date(end_date))
        cached = self._cache.get(key)
        if cached is not MISS:
            return list(cached)

        limit, page = pagination(filters)
        params = {
            "start_date": as_date(start_date).isoformat(),
            "end_date": as_date(end_date).isoformat(),
            "limit": limit,
            "page": page,
        }
        try:
            payload = await self._get("/api/tours", params=params)
        except UPSTREAM_ERRORS as e:
            self._log_upstream_error("list", e, **params)
            return self._fallback()

        # An envelope without "data" is an empty page, not an outage
        tours = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(tours, list):
            logger.warning(f"[{self.name}] Unexpected listing envelope: {type(payload).__name__}")
            return self._fallback()

        experiences = normalize_tours(tours, source=self.name, label=self.label)
        self._remember(experiences)
        self._cache.put(key, experiences)
        logger.info(f"[{self.name}] Listed {len(experiences)} of {len(tours)} tours")
        return list(experiences)

    async def get_details(self, experience_id: ExperienceId) -> Optional[ExperienceDetails]:
        native_id = self._native_id(experience_id)
        if native_id is None:
            return None

        key = cache_key("details", native_id)
        cached = self._cache.get(key)
        if cached is not MISS:
            return cached

        try:
            payload = await self._get(f"/api/tours/{quote(native_id, safe='')}")
        except ProviderError as e:
            if (e.detail or {}).get("upstream_status") == 404:
                logger.debug(f"[{self.name}] No tour {native_id!r}")
            else:
                self._log_upstream_error("details", e, experience_id=native_id)
            return None
        except UPSTREAM_ERRORS as e:
            self._log_upstream_error("details", e, experience_id=native_id)
            return None

        if not isinstance(payload, dict):
            return None
        tour = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        try:
            details = normalize_tour_details(tour, source=self.name, label=self.label)
        except (ValueError, ModelValidationError) as e:
            logger.warning(f"[{self.name}] Unreadable tour {native_id!r}: {str(e)[:200]}")
            return None

        self._remember([details])
        self._cache.put(key, details)
        return details

    async def get_availability(self, experience_id: ExperienceId, on_date: DateLike) -> Availability:
        native_id = self._native_id(experience_id)
        if native_id is None:
            return Availability.unavailable()

        day = as_date(on_date)
        key = cache_key("availability", native_id, day)
        cached = self._cache.get(key)
        if cached is not MISS:
            return cached

        prices, availability = await asyncio.gather(
            self._get("/api/tour-prices", params={"tour_id": native_id}),
            self._get(
                f"/api/tours/{quote(native_id, safe='')}/availability",
                params={"date": day.isoformat()},
            ),
            return_exceptions=True,
        )
        for operation, outcome in (("prices", prices), ("availability", availability)):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, UPSTREAM_ERRORS):
                    raise outcome
                self._log_upstream_error(
                    operation, outcome, experience_id=native_id, date=day.isoformat()
                )
                return Availability.unavailable()

        result = normalize_availability(prices, availability, day, native_id)
        self._cache.put(key, result)
        return result

    async def is_healthy(self) -> bool:
        """Enabled flag, plus a cached liveness probe when one is configured."""
        if not self.config.enabled:
            return False
        if not self.config.health_probe:
            return True

        key = cache_key("health")
        cached = self._health_cache.get(key)
        if cached is not MISS:
            return cached

        try:
            await self._get(
                "/api/tours",
                params={"limit": 1, "page": 1},
                timeout=self.config.health_timeout,
            )
            healthy = True
        except UPSTREAM_ERRORS as e:
            self._log_upstream_error("health", e)
            healthy = False
        self._health_cache.put(key, healthy)
        return healthy

    def clear_cache(self) -> None:
        self._cache.invalidate()
        self._health_cache.invalidate()
