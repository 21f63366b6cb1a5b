import sys
import os
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest

# Add parent directory to path to allow importing the project modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from experiences.catalog import CatalogExperience, CatalogSlot, InMemoryCatalogStore
from experiences.config import ProviderConfig
from experiences.models import CategoryRef

# Seeded time slots: (start, end, sell, buy)
SEEDED_SLOTS = [
    (time(9), time(12), Decimal("99.99"), Decimal("79.99")),
    (time(14), time(17), Decimal("89.99"), Decimal("69.99")),
    (time(18), time(21), Decimal("109.99"), Decimal("89.99")),
]


def make_slots(days: int = 30, start: date = None):
    start = start or date.today()
    slots = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        for start_time, end_time, sell, buy in SEEDED_SLOTS:
            slots.append(CatalogSlot(
                start_time=datetime.combine(day, start_time),
                end_time=datetime.combine(day, end_time),
                sell_price=sell,
                buy_price=buy,
            ))
    return slots


def new_york_tour(**overrides) -> CatalogExperience:
    data = dict(
        id=501,
        slug="new-york-city-tour",
        title="New York City Walking Tour",
        short_description="Explore the iconic landmarks of NYC",
        description="Discover the heart of Manhattan on foot.",
        thumbnail="https://picsum.photos/300/200?random=1",
        images=["https://picsum.photos/800/600?random=11"],
        categories=[CategoryRef(id=1, name="Walking Tours", slug="walking-tours")],
        city="New York",
        country_code="US",
        latitude=40.7128,
        longitude=-74.0060,
        rating=4.8,
    )
    data.update(overrides)
    return CatalogExperience(**data)


@pytest.fixture
def catalog_store():
    store = InMemoryCatalogStore()
    store.add(new_york_tour(), make_slots())
    return store


@pytest.fixture
def provider_config():
    return ProviderConfig(
        name="heavenly_tours",
        label="Heavenly Tours",
        base_url="https://tours.test",
        api_key="secret-key",
        timeout=5.0,
        cache_ttl=3600,
    )
