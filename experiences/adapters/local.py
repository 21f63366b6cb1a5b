"""Local catalog exposed through the source contract."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from experiences.adapters.base import DateLike, ExperienceId, SourceAdapter, validate_date_range
from experiences.cache import as_date
from experiences.catalog import CatalogExperience, CatalogStore
from experiences.models import (
    LOCAL_SOURCE,
    Availability,
    Experience,
    ExperienceDetails,
    ExperienceImage,
    Money,
    PriceSlot,
)


def _catalog_id(experience_id: ExperienceId) -> Optional[int]:
    if isinstance(experience_id, bool):
        return None
    if isinstance(experience_id, int):
        return experience_id
    text = str(experience_id).strip()
    return int(text) if text.isdigit() else None


def _money(amount, currency: str) -> Optional[Money]:
    return Money(amount=amount, currency=currency) if amount is not None else None


def _listing_fields(record: CatalogExperience) -> dict:
    return {
        "id": record.id,
        "source": LOCAL_SOURCE,
        "provider_id": None,
        "provider": None,
        "slug": record.slug,
        "title": record.title,
        "short_description": record.short_description,
        "thumbnail": record.thumbnail,
        "sell_price": _money(record.sell_price, record.currency),
        "buy_price": _money(record.buy_price, record.currency),
        "city": record.city,
        "country_code": record.country_code,
        "language": record.language,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "rating": record.rating,
    }


class LocalCatalogAdapter(SourceAdapter):
    """Always healthy; catalog outages raise CatalogUnavailableError."""

    def __init__(self, store: CatalogStore):
        self.store = store

    @property
    def name(self) -> str:
        return LOCAL_SOURCE

    async def list_experiences(
        self,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Experience]:
        validate_date_range(start_date, end_date)
        records = await self.store.list_between(as_date(start_date), as_date(end_date))
        return [Experience(**_listing_fields(record)) for record in records]

    async def get_details(self, experience_id: ExperienceId) -> Optional[ExperienceDetails]:
        catalog_id = _catalog_id(experience_id)
        if catalog_id is None:
            return None
        record = await self.store.get(catalog_id)
        if record is None:
            return None

        images = []
        if record.thumbnail:
            images.append(ExperienceImage(url=record.thumbnail, role="thumbnail"))
        images.extend(ExperienceImage(url=url, role="gallery") for url in record.images)
        return ExperienceDetails(
            **_listing_fields(record),
            description=record.description,
            images=images,
            categories=record.categories,
        )

    async def get_availability(self, experience_id: ExperienceId, on_date: DateLike) -> Availability:
        catalog_id = _catalog_id(experience_id)
        if catalog_id is None:
            return Availability.unavailable()
        slots = await self.store.slots_on(catalog_id, as_date(on_date))
        return Availability(
            available=bool(slots),
            prices=[
                PriceSlot(
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    sell_price=slot.sell_price,
                    currency=slot.currency,
                )
                for slot in slots
            ],
        )

    async def recognizes(self, experience_id: ExperienceId) -> bool:
        """Whether the catalog owns this id, regardless of availability."""
        catalog_id = _catalog_id(experience_id)
        if catalog_id is None:
            return False
        return await self.store.get(catalog_id) is not None

    async def is_healthy(self) -> bool:
        return True
