from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from experiences.models import (
    AggregatedListing,
    Availability,
    CategoryRef,
    Experience,
    Money,
    PriceSlot,
    SourceStatusSnapshot,
)


def test_money_normalizes_currency_case():
    money = Money(amount=Decimal("10.50"), currency="eur")
    assert money.currency == "EUR"
    assert money.amount == Decimal("10.50")


def test_money_rejects_bad_currency_and_negative_amount():
    with pytest.raises(ValidationError):
        Money(amount=Decimal("1"), currency="EURO")
    with pytest.raises(ValidationError):
        Money(amount=Decimal("-1"), currency="USD")


def test_experience_defaults_to_local_source():
    experience = Experience(id=501, slug="new-york-city-tour", title="New York City Walking Tour")
    assert experience.source == "local"
    assert experience.is_local
    assert experience.rating is None
    assert experience.latitude is None


def test_experience_requires_non_empty_source():
    with pytest.raises(ValidationError):
        Experience(id=1, slug="a", title="A", source="  ")


def test_experience_rating_bounds():
    with pytest.raises(ValidationError):
        Experience(id=1, slug="a", title="A", rating=5.5)


def test_category_accepts_bare_name():
    assert CategoryRef.model_validate("Food").name == "Food"


def test_unavailable_availability_never_carries_prices():
    slot = PriceSlot(
        start_time=datetime(2026, 10, 20, 9),
        end_time=datetime(2026, 10, 20, 11),
        sell_price=Decimal("99.99"),
    )
    availability = Availability(available=False, prices=[slot])
    assert availability.prices == []
    assert Availability.unavailable().model_dump() == {"available": False, "prices": []}


def test_aggregated_listing_summary_by_source():
    listing = AggregatedListing(
        source_statuses=[
            SourceStatusSnapshot(source="local", operation="list", status="ok", result_count=1),
            SourceStatusSnapshot(source="heavenly_tours", operation="list", status="timeout"),
        ]
    )
    summary = listing.source_summary()
    assert summary["heavenly_tours"].status == "timeout"
    assert summary["local"].result_count == 1
    assert listing.from_cache is False
    assert listing.generated_at.tzinfo is not None
