"""Heavenly Tours payload normalizer."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from experiences.models import (
    Availability,
    CategoryRef,
    Experience,
    ExperienceDetails,
    PriceSlot,
)
from experiences.normalizers import (
    canonical_id,
    country_code,
    first_photo,
    normalize_images,
    optional_float,
    parse_money,
    slugify,
)
from utils.dates import utc_midnight

logger = logging.getLogger(__name__)

SOURCE = "heavenly_tours"
LABEL = "Heavenly Tours"

# Upstream prices carry no times; each matching price becomes a slot of this length
SLOT_LENGTH = timedelta(hours=2)


def _rating(value: Any) -> Optional[float]:
    rating = optional_float(value)
    if rating is None or not 0 <= rating <= 5:
        return None
    return rating


def _base_fields(tour: Dict[str, Any], source: str, label: str) -> Dict[str, Any]:
    native_id = tour.get("id")
    title = tour.get("title")
    if native_id in (None, "") or not title:
        raise ValueError("tour is missing id or title")

    price = parse_money(tour.get("price"), tour.get("currency") or "USD")
    return {
        "id": canonical_id(native_id),
        "provider_id": str(native_id),
        "provider": label,
        "source": source,
        "slug": slugify(title),
        "title": title,
        "short_description": tour.get("excerpt"),
        "thumbnail": first_photo(tour.get("photos")),
        "sell_price": price,
        "buy_price": price,
        "rating": _rating(tour.get("rating")),
        "city": tour.get("city"),
        "country_code": country_code(tour.get("country")),
        "language": tour.get("language") or "en",
        "latitude": optional_float(tour.get("latitude")),
        "longitude": optional_float(tour.get("longitude")),
    }


def normalize_tour(tour: Dict[str, Any], *, source: str = SOURCE, label: str = LABEL) -> Experience:
    """Map one upstream tour to the canonical listing shape.

    Raises ValueError when the record is unusable (no id or title).
    """
    return Experience(**_base_fields(tour, source, label))


def normalize_tours(
    tours: List[Any], *, source: str = SOURCE, label: str = LABEL
) -> List[Experience]:
    """Normalize a batch, skipping only the records that cannot be parsed."""
    results: List[Experience] = []
    for tour in tours or []:
        if not isinstance(tour, dict):
            logger.warning(f"[{source}] Skipping non-object tour record: {type(tour).__name__}")
            continue
        try:
            results.append(normalize_tour(tour, source=source, label=label))
        except (ValueError, ModelValidationError) as e:
            logger.warning(
                f"[{source}] Skipping malformed tour",
                extra={"provider_id": tour.get("id"), "reason": str(e)[:200]},
            )
    return results


def normalize_tour_details(
    tour: Dict[str, Any], *, source: str = SOURCE, label: str = LABEL
) -> ExperienceDetails:
    fields = _base_fields(tour, source, label)
    categories = []
    for category in tour.get("categories") or []:
        try:
            categories.append(CategoryRef.model_validate(category))
        except ModelValidationError:
            logger.debug(f"[{source}] Dropping unreadable category {category!r}")

    return ExperienceDetails(
        **fields,
        description=tour.get("description"),
        images=normalize_images(tour.get("photos")),
        categories=categories,
    )


def normalize_availability(
    prices: Any,
    availability: Any,
    on_date: date,
    native_id: str,
) -> Availability:
    """Combine the price list and the per-date availability into one record.

    Slots are laid out back to back from midnight of the requested date, one
    per price entry that belongs to the tour.
    """
    if not isinstance(availability, dict) or not availability.get("available"):
        return Availability.unavailable()

    tour_id = str(availability.get("tourId") or native_id)
    slot_start = utc_midnight(on_date)
    slots: List[PriceSlot] = []
    for entry in prices if isinstance(prices, list) else []:
        if not isinstance(entry, dict) or str(entry.get("tourId")) != tour_id:
            continue
        money = parse_money(entry.get("price"), entry.get("currency") or "USD")
        if money is None:
            logger.warning(f"[{SOURCE}] Unparsable price for tour {tour_id}: {entry.get('price')!r}")
            continue
        slots.append(
            PriceSlot(
                start_time=slot_start,
                end_time=slot_start + SLOT_LENGTH,
                sell_price=money.amount,
                currency=money.currency,
            )
        )
        slot_start += SLOT_LENGTH

    return Availability(available=True, prices=slots)


def placeholder_experiences(*, source: str = SOURCE, label: str = LABEL) -> List[Experience]:
    """Fixed listing served when the upstream is unreachable and degraded mode is on."""
    placeholders = []
    for index, amount in ((1, "100.00"), (2, "200.00")):
        title = f"Mock Experience {index}"
        native_id = f"mock-{index}"
        price = parse_money(f"{amount} USD")
        placeholders.append(
            Experience(
                id=canonical_id(native_id),
                provider_id=native_id,
                provider=label,
                source=source,
                slug=slugify(title),
                title=title,
                short_description=f"Short description for {title}",
                thumbnail=None,
                sell_price=price,
                buy_price=price,
                city="Mock City",
                country_code="US",
            )
        )
    return placeholders
