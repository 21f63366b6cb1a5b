import asyncio
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import make_slots, new_york_tour
from exceptions import CatalogUnavailableError, ValidationError
from experiences.adapters.base import SourceAdapter
from experiences.adapters.heavenly_tours import HeavenlyToursAdapter
from experiences.adapters.local import LocalCatalogAdapter
from experiences.aggregator import ExperienceAggregator, local_first
from experiences.catalog import InMemoryCatalogStore
from experiences.config import AggregatorConfig
from experiences.models import Availability, Experience, ExperienceDetails, PriceSlot
from experiences.normalizers.heavenly_tours import placeholder_experiences
from experiences.registry import SourceRegistry


class FakeProvider(SourceAdapter):
    """Provider double that counts every call."""

    def __init__(self, name="heavenly_tours", experiences=None, healthy=True, fail=None,
                 delay=0.0, availability=None, timeout=1.0):
        self._name = name
        self.experiences = experiences if experiences is not None else placeholder_experiences(source=name)[:1]
        self.healthy = healthy
        self.fail = fail
        self.delay = delay
        self.availability = availability or Availability.unavailable()
        self._timeout = timeout
        self.calls = {"list": 0, "details": 0, "availability": 0, "health": 0}

    @property
    def name(self):
        return self._name

    @property
    def timeout_seconds(self):
        return self._timeout

    async def _maybe_fail(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise self.fail

    async def list_experiences(self, start_date, end_date, filters=None):
        self.calls["list"] += 1
        await self._maybe_fail()
        return list(self.experiences)

    async def get_details(self, experience_id):
        self.calls["details"] += 1
        await self._maybe_fail()
        for experience in self.experiences:
            if str(experience.id) == str(experience_id):
                return ExperienceDetails(**experience.model_dump())
        return None

    async def get_availability(self, experience_id, on_date):
        self.calls["availability"] += 1
        await self._maybe_fail()
        return self.availability

    async def is_healthy(self):
        self.calls["health"] += 1
        return self.healthy


class BrokenStore(InMemoryCatalogStore):
    async def list_between(self, start, end):
        raise CatalogUnavailableError("catalog offline")


def _aggregator(store, *providers, **config):
    registry = SourceRegistry(LocalCatalogAdapter(store), providers)
    return ExperienceAggregator(registry, AggregatorConfig(**config))


TODAY = date.today()
WINDOW_END = TODAY + timedelta(days=14)


@pytest.mark.asyncio
async def test_list_all_local_first_with_healthy_provider(catalog_store):
    aggregator = _aggregator(catalog_store, FakeProvider())

    experiences = await aggregator.list_all(TODAY, WINDOW_END)

    assert len(experiences) == 2
    assert experiences[0].source == "local"
    assert experiences[0].id == 501
    assert experiences[1].source == "heavenly_tours"
    assert experiences[1].title == "Mock Experience 1"


@pytest.mark.asyncio
async def test_unhealthy_provider_is_skipped(catalog_store):
    provider = FakeProvider(healthy=False)
    aggregator = _aggregator(catalog_store, provider)

    experiences = await aggregator.list_all(TODAY, WINDOW_END)

    assert [e.id for e in experiences] == [501]
    assert provider.calls["list"] == 0
    assert await aggregator.list_provider_names() == ["local"]


@pytest.mark.asyncio
async def test_health_is_rechecked_on_every_call(catalog_store):
    provider = FakeProvider(healthy=False)
    aggregator = _aggregator(catalog_store, provider)

    assert await aggregator.list_provider_names() == ["local"]
    provider.healthy = True
    assert await aggregator.list_provider_names() == ["local", "heavenly_tours"]


@pytest.mark.asyncio
async def test_local_details_never_consult_providers(catalog_store):
    provider = FakeProvider()
    aggregator = _aggregator(catalog_store, provider)

    details = await aggregator.get_details("501")

    assert details.source == "local"
    assert details.slug == "new-york-city-tour"
    assert provider.calls == {"list": 0, "details": 0, "availability": 0, "health": 0}


@pytest.mark.asyncio
async def test_failing_provider_availability_is_unavailable():
    provider = FakeProvider(fail=RuntimeError("availability upstream failed"))
    aggregator = _aggregator(InMemoryCatalogStore(), provider)

    availability = await aggregator.get_availability("ht-1", TODAY)

    assert availability.available is False
    assert availability.prices == []


@pytest.mark.asyncio
async def test_provider_failure_does_not_break_listing(catalog_store):
    failing = FakeProvider(name="broken", fail=RuntimeError("boom"))
    working = FakeProvider(name="heavenly_tours")
    aggregator = _aggregator(catalog_store, failing, working)

    listing = await aggregator.list_all_with_status(TODAY, WINDOW_END)

    assert [e.source for e in listing.experiences] == ["local", "heavenly_tours"]
    summary = listing.source_summary()
    assert summary["broken"].status == "error"
    assert summary["heavenly_tours"].status == "ok"
    assert summary["local"].result_count == 1


@pytest.mark.asyncio
async def test_slow_provider_times_out_independently(catalog_store):
    slow = FakeProvider(name="slow", delay=0.2, timeout=0.01)
    fast = FakeProvider(name="fast")
    aggregator = _aggregator(catalog_store, slow, fast)

    listing = await aggregator.list_all_with_status(TODAY, WINDOW_END)

    assert [e.source for e in listing.experiences] == ["local", "fast"]
    assert listing.source_summary()["slow"].status == "timeout"


@pytest.mark.asyncio
async def test_unhealthy_provider_reported_as_skipped(catalog_store):
    aggregator = _aggregator(catalog_store, FakeProvider(healthy=False))

    listing = await aggregator.list_all_with_status(TODAY, WINDOW_END)

    assert listing.source_summary()["heavenly_tours"].status == "skipped"


@pytest.mark.asyncio
async def test_providers_keep_registry_and_internal_order(catalog_store):
    first = FakeProvider(name="alpha", experiences=placeholder_experiences(source="alpha"), delay=0.02)
    second = FakeProvider(name="beta", experiences=placeholder_experiences(source="beta"))
    aggregator = _aggregator(catalog_store, first, second)

    experiences = await aggregator.list_all(TODAY, WINDOW_END)

    assert [(e.source, e.provider_id) for e in experiences] == [
        ("local", None),
        ("alpha", "mock-1"),
        ("alpha", "mock-2"),
        ("beta", "mock-1"),
        ("beta", "mock-2"),
    ]


def test_local_first_is_a_stable_partition():
    items = [
        Experience(id=1, slug="p1", title="P1", source="p"),
        Experience(id=2, slug="l1", title="L1"),
        Experience(id=3, slug="p2", title="P2", source="p"),
        Experience(id=4, slug="l2", title="L2"),
    ]
    assert [e.id for e in local_first(items)] == [2, 4, 1, 3]


@pytest.mark.asyncio
async def test_merged_listing_is_cached(catalog_store):
    provider = FakeProvider()
    aggregator = _aggregator(catalog_store, provider)

    first = await aggregator.list_all_with_status(TODAY, WINDOW_END)
    second = await aggregator.list_all_with_status(TODAY, WINDOW_END)

    assert provider.calls["list"] == 1
    assert first.from_cache is False
    assert second.from_cache is True
    assert [e.id for e in second.experiences] == [e.id for e in first.experiences]

    aggregator.invalidate()
    await aggregator.list_all(TODAY, WINDOW_END)
    assert provider.calls["list"] == 2


@pytest.mark.asyncio
async def test_zero_cache_ttl_disables_merged_cache(catalog_store):
    provider = FakeProvider()
    aggregator = _aggregator(catalog_store, provider, list_cache_ttl=0)

    await aggregator.list_all(TODAY, WINDOW_END)
    await aggregator.list_all(TODAY, WINDOW_END)

    assert provider.calls["list"] == 2


@pytest.mark.asyncio
async def test_list_all_rejects_inverted_range(catalog_store):
    aggregator = _aggregator(catalog_store, FakeProvider())
    with pytest.raises(ValidationError):
        await aggregator.list_all(WINDOW_END, TODAY)


@pytest.mark.asyncio
async def test_catalog_outage_propagates():
    aggregator = _aggregator(BrokenStore(), FakeProvider())
    with pytest.raises(CatalogUnavailableError):
        await aggregator.list_all(TODAY, WINDOW_END)


@pytest.mark.asyncio
async def test_details_fall_back_to_providers_in_order():
    first = FakeProvider(name="alpha", experiences=[])
    second = FakeProvider(name="beta", experiences=placeholder_experiences(source="beta"))
    third = FakeProvider(name="gamma", experiences=placeholder_experiences(source="gamma"))
    aggregator = _aggregator(InMemoryCatalogStore(), first, second, third)

    details = await aggregator.get_details(2)

    assert details.source == "beta"
    assert first.calls["details"] == 1
    assert third.calls["details"] == 0


@pytest.mark.asyncio
async def test_details_absent_everywhere_is_none(catalog_store):
    aggregator = _aggregator(catalog_store, FakeProvider(fail=RuntimeError("down")))
    assert await aggregator.get_details("999999") is None


@pytest.mark.asyncio
async def test_local_availability_is_authoritative(catalog_store):
    provider = FakeProvider()
    aggregator = _aggregator(catalog_store, provider)

    availability = await aggregator.get_availability(501, TODAY)

    assert availability.available is True
    assert [slot.sell_price for slot in availability.prices] == [
        Decimal("99.99"), Decimal("89.99"), Decimal("109.99")
    ]
    assert provider.calls["availability"] == 0


@pytest.mark.asyncio
async def test_local_id_without_slots_is_still_authoritative():
    store = InMemoryCatalogStore([new_york_tour()])
    provider = FakeProvider()
    aggregator = _aggregator(store, provider)

    availability = await aggregator.get_availability("501", TODAY)

    assert availability.available is False
    assert provider.calls["availability"] == 0


@pytest.mark.asyncio
async def test_first_provider_with_prices_wins():
    slot = PriceSlot(
        start_time=f"{TODAY.isoformat()}T00:00:00",
        end_time=f"{TODAY.isoformat()}T02:00:00",
        sell_price=Decimal("49.50"),
    )
    empty = FakeProvider(name="alpha")
    priced = FakeProvider(name="beta", availability=Availability(available=True, prices=[slot]))
    aggregator = _aggregator(InMemoryCatalogStore(), empty, priced)

    availability = await aggregator.get_availability("ht-1", TODAY)

    assert availability.available is True
    assert availability.prices[0].sell_price == Decimal("49.50")
    assert empty.calls["availability"] == 1


@pytest.mark.asyncio
async def test_list_by_source(catalog_store):
    provider = FakeProvider()
    aggregator = _aggregator(catalog_store, provider)

    local = await aggregator.list_by_source("local", TODAY, WINDOW_END)
    remote = await aggregator.list_by_source("heavenly_tours", TODAY, WINDOW_END)
    unknown = await aggregator.list_by_source("nowhere", TODAY, WINDOW_END)

    assert [e.id for e in local] == [501]
    assert [e.source for e in remote] == ["heavenly_tours"]
    assert unknown == []


@pytest.mark.asyncio
async def test_list_by_source_unhealthy_is_empty(catalog_store):
    provider = FakeProvider(healthy=False)
    aggregator = _aggregator(catalog_store, provider)

    assert await aggregator.list_by_source("heavenly_tours", TODAY, WINDOW_END) == []
    assert provider.calls["list"] == 0


@pytest.mark.asyncio
async def test_exists_short_circuits(catalog_store):
    first = FakeProvider(name="alpha")
    second = FakeProvider(name="beta")
    aggregator = _aggregator(catalog_store, first, second)

    assert await aggregator.exists("501") is True
    assert first.calls["details"] == 0

    assert await aggregator.exists(1) is True
    assert first.calls["details"] == 1
    assert second.calls["details"] == 0

    assert await aggregator.exists("missing") is False


@pytest.mark.asyncio
async def test_fallback_ids_do_not_collide_with_catalog_ids(provider_config):
    store = InMemoryCatalogStore()
    store.add(new_york_tour(id=1, slug="first-tour"), make_slots(days=1))
    store.add(new_york_tour(id=2, slug="second-tour"), make_slots(days=1))
    aggregator = _aggregator(store, HeavenlyToursAdapter(provider_config))

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client.get.side_effect = httpx.ConnectError("connection refused")

        experiences = await aggregator.list_all(TODAY, TODAY)

    assert [(e.source, e.provider_id) for e in experiences] == [
        ("local", None),
        ("local", None),
        ("heavenly_tours", "mock-1"),
        ("heavenly_tours", "mock-2"),
    ]
    ids = [e.id for e in experiences]
    assert len(set(ids)) == len(ids)
    assert (await aggregator.get_details(1)).slug == "first-tour"
