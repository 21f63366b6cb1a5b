"""Experience aggregation across the local catalog and external providers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional

from experiences.adapters.base import DateLike, ExperienceId, SourceAdapter, validate_date_range
from experiences.cache import MISS, TTLCache, as_date, cache_key
from experiences.catalog import CatalogStore
from experiences.config import AggregatorConfig
from experiences.executors import run_source_with_status, skipped_status
from experiences.metrics import AggregationMetricsCollector, get_metrics_collector, log_source_result
from experiences.models import (
    LOCAL_SOURCE,
    AggregatedListing,
    Availability,
    Experience,
    ExperienceDetails,
    SourceStatusSnapshot,
)
from experiences.registry import SourceRegistry, build_source_registry

logger = logging.getLogger(__name__)


def local_first(experiences: List[Experience]) -> List[Experience]:
    """Stable partition: local items first, everything else in arrival order."""
    return [e for e in experiences if e.is_local] + [e for e in experiences if not e.is_local]


class ExperienceAggregator:
    """Fans queries out to every source and merges what comes back.

    Provider failures and timeouts only cost that provider's contribution.
    The local catalog is the system of record: its failures propagate.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        config: Optional[AggregatorConfig] = None,
        *,
        metrics: Optional[AggregationMetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.config = config or AggregatorConfig()
        self.metrics = metrics or get_metrics_collector()
        self._list_cache: TTLCache[AggregatedListing] = TTLCache(
            "aggregated_list", default_ttl=self.config.list_cache_ttl, clock=clock
        )

    async def _check_health(self, provider: SourceAdapter) -> bool:
        healthy, _ = await run_source_with_status(
            provider.name,
            "health",
            provider.is_healthy,
            timeout_seconds=provider.timeout_seconds,
            default=False,
        )
        return bool(healthy)

    async def _healthy_providers(self) -> AsyncIterator[SourceAdapter]:
        """Providers in registry order, health rechecked lazily on every call."""
        for provider in self.registry.providers:
            if await self._check_health(provider):
                yield provider
            else:
                logger.debug(f"Skipping unhealthy provider {provider.name}")

    async def _run(self, source: SourceAdapter, operation: str, call, default: Any = None):
        value, status = await run_source_with_status(
            source.name,
            operation,
            call,
            timeout_seconds=source.timeout_seconds,
            default=default,
        )
        if status.status != "ok":
            log_source_result(source.name, operation, status.status, 0, status.latency_ms)
        return value, status

    async def list_all(
        self,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Experience]:
        listing = await self.list_all_with_status(start_date, end_date, filters)
        return list(listing.experiences)

    async def list_all_with_status(
        self,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> AggregatedListing:
        """Merged listing for the date range plus one status per source.

        Cached per (start date, end date); filters do not take part in the key.
        """
        validate_date_range(start_date, end_date)
        start, end = as_date(start_date), as_date(end_date)
        key = cache_key("list_all", start, end)

        with self.metrics.track_aggregation("list", start, end) as tracked:
            cached = self._list_cache.get(key)
            if cached is not MISS:
                tracked.from_cache = True
                self.metrics.record_results(
                    tracked,
                    len(cached.experiences),
                    sum(1 for e in cached.experiences if e.is_local),
                )
                return cached.model_copy(update={"from_cache": True})

            async def list_from(source: SourceAdapter):
                return await self._run(
                    source,
                    "list",
                    lambda: source.list_experiences(start, end, filters),
                    default=[],
                )

            async def list_if_healthy(provider: SourceAdapter):
                if not await self._check_health(provider):
                    return [], skipped_status(provider.name, "list")
                return await list_from(provider)

            outcomes = await asyncio.gather(
                list_from(self.registry.local),
                *(list_if_healthy(provider) for provider in self.registry.providers),
            )

            merged: List[Experience] = []
            statuses: List[SourceStatusSnapshot] = []
            for experiences, status in outcomes:
                statuses.append(status)
                self.metrics.record_source(
                    tracked, status.source, status.status, status.result_count,
                    status.latency_ms, status.message,
                )
                merged.extend(experiences or [])

            ordered = local_first(merged)
            self.metrics.record_results(tracked, len(ordered), sum(1 for e in ordered if e.is_local))

            listing = AggregatedListing(experiences=ordered, source_statuses=statuses)
            self._list_cache.put(key, listing)
            return listing

    async def get_details(self, experience_id: ExperienceId) -> Optional[ExperienceDetails]:
        """Local catalog first, then healthy providers in registry order."""
        details = await self.registry.local.get_details(experience_id)
        if details is not None:
            return details

        async for provider in self._healthy_providers():
            details, _ = await self._run(
                provider, "details", lambda p=provider: p.get_details(experience_id)
            )
            if details is not None:
                return details
        return None

    async def get_availability(self, experience_id: ExperienceId, on_date: DateLike) -> Availability:
        """The local catalog answers for ids it owns; otherwise the first provider with prices."""
        local = self.registry.local
        if await local.recognizes(experience_id):
            return await local.get_availability(experience_id, on_date)

        async for provider in self._healthy_providers():
            availability, _ = await self._run(
                provider,
                "availability",
                lambda p=provider: p.get_availability(experience_id, on_date),
                default=Availability.unavailable(),
            )
            if availability is not None and availability.prices:
                return availability
        return Availability.unavailable()

    async def list_provider_names(self) -> List[str]:
        names = [LOCAL_SOURCE]
        async for provider in self._healthy_providers():
            names.append(provider.name)
        return names

    async def list_by_source(
        self,
        source: str,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Experience]:
        """One source's listing, unmerged. Unknown or unhealthy sources give []."""
        validate_date_range(start_date, end_date)
        adapter = self.registry.get(source)
        if adapter is None:
            logger.info(f"Listing requested for unknown source {source!r}")
            return []
        if adapter is self.registry.local:
            return await adapter.list_experiences(start_date, end_date, filters)
        if not await self._check_health(adapter):
            return []

        experiences, _ = await self._run(
            adapter,
            "list",
            lambda: adapter.list_experiences(start_date, end_date, filters),
            default=[],
        )
        return list(experiences or [])

    async def exists(self, experience_id: ExperienceId) -> bool:
        if await self.registry.local.recognizes(experience_id):
            return True
        async for provider in self._healthy_providers():
            details, _ = await self._run(
                provider, "details", lambda p=provider: p.get_details(experience_id)
            )
            if details is not None:
                return True
        return False

    def invalidate(self) -> None:
        """Drop every merged listing held in the response cache."""
        self._list_cache.invalidate()


def create_aggregator(
    catalog_store: CatalogStore,
    config: Optional[AggregatorConfig] = None,
) -> ExperienceAggregator:
    config = config or AggregatorConfig.from_env()
    registry = build_source_registry(config, catalog_store)
    logger.info(f"Experience sources: {', '.join(registry.names())}")
    return ExperienceAggregator(registry, config)
