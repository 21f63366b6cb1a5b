"""Local catalog storage behind the LocalCatalogAdapter.

The adapter only needs three capabilities from the catalog, captured by
:class:`CatalogStore`. ``InMemoryCatalogStore`` serves tests and offline runs;
``SqlCatalogStore`` reads the SQLModel tables in :mod:`models`.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from exceptions import CatalogUnavailableError
from models import CatalogAvailabilityRecord, CatalogCategoryRecord, CatalogExperienceRecord
from experiences.models import CategoryRef
from utils.dates import as_utc, utc_midnight

logger = logging.getLogger(__name__)


class CatalogSlot(BaseModel):
    start_time: datetime
    end_time: datetime
    sell_price: Decimal
    buy_price: Optional[Decimal] = None
    currency: str = "USD"

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive values for timezone-aware columns
        return as_utc(value)


class CatalogExperience(BaseModel):
    """A catalog row as the adapter sees it."""

    id: int
    slug: str
    title: str
    short_description: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    categories: List[CategoryRef] = Field(default_factory=list)
    city: Optional[str] = None
    country_code: Optional[str] = None
    language: str = "en"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    currency: str = "USD"
    is_active: bool = True
    # Cheapest slot in the queried window, when the store computed one
    sell_price: Optional[Decimal] = None
    buy_price: Optional[Decimal] = None


class CatalogStore(Protocol):
    async def list_between(self, start: date, end: date) -> List[CatalogExperience]:
        """Active experiences with at least one slot starting within [start, end]."""
        ...

    async def get(self, experience_id: int) -> Optional[CatalogExperience]:
        ...

    async def slots_on(self, experience_id: int, on_date: date) -> List[CatalogSlot]:
        ...


def _window(start: date, end: date) -> tuple[datetime, datetime]:
    return utc_midnight(start), utc_midnight(end + timedelta(days=1))


def _with_window_price(experience: CatalogExperience, slots: Iterable[CatalogSlot]) -> CatalogExperience:
    cheapest = min(slots, key=lambda slot: slot.sell_price, default=None)
    if cheapest is None:
        return experience
    return experience.model_copy(
        update={"sell_price": cheapest.sell_price, "buy_price": cheapest.buy_price}
    )


class InMemoryCatalogStore:
    def __init__(
        self,
        experiences: Optional[Iterable[CatalogExperience]] = None,
        slots: Optional[Dict[int, List[CatalogSlot]]] = None,
    ):
        self._experiences: Dict[int, CatalogExperience] = {}
        self._slots: Dict[int, List[CatalogSlot]] = {}
        for experience in experiences or []:
            self.add(experience, (slots or {}).get(experience.id, []))

    def add(self, experience: CatalogExperience, slots: Iterable[CatalogSlot] = ()) -> None:
        self._experiences[experience.id] = experience
        self._slots.setdefault(experience.id, []).extend(slots)
        self._slots[experience.id].sort(key=lambda slot: slot.start_time)

    async def list_between(self, start: date, end: date) -> List[CatalogExperience]:
        window_start, window_end = _window(start, end)
        results = []
        for experience in sorted(self._experiences.values(), key=lambda e: e.id):
            if not experience.is_active:
                continue
            in_window = [
                slot for slot in self._slots.get(experience.id, [])
                if window_start <= slot.start_time < window_end
            ]
            if in_window:
                results.append(_with_window_price(experience, in_window))
        return results

    async def get(self, experience_id: int) -> Optional[CatalogExperience]:
        return self._experiences.get(experience_id)

    async def slots_on(self, experience_id: int, on_date: date) -> List[CatalogSlot]:
        window_start, window_end = _window(on_date, on_date)
        return [
            slot for slot in self._slots.get(experience_id, [])
            if window_start <= slot.start_time < window_end
        ]


class SqlCatalogStore:
    """Catalog backed by the ``catalog_*`` tables.

    Any database failure surfaces as CatalogUnavailableError.
    """

    def __init__(self, session_factory: Callable):
        self._session_factory = session_factory

    @staticmethod
    def _to_catalog(record: CatalogExperienceRecord, categories=()) -> CatalogExperience:
        images: List[str] = []
        if record.images:
            try:
                images = [url for url in json.loads(record.images) if isinstance(url, str)]
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed images JSON on catalog experience {record.id}")
        return CatalogExperience(
            id=record.id,
            slug=record.slug,
            title=record.title,
            short_description=record.short_description,
            description=record.description,
            thumbnail=record.thumbnail,
            images=images,
            categories=[CategoryRef(id=c.id, name=c.name, slug=c.slug) for c in categories],
            city=record.city,
            country_code=record.country_code,
            language=record.language,
            latitude=record.latitude,
            longitude=record.longitude,
            rating=record.rating,
            currency=record.currency,
            is_active=record.is_active,
        )

    @staticmethod
    def _to_slot(record: CatalogAvailabilityRecord, currency: str) -> CatalogSlot:
        return CatalogSlot(
            start_time=record.start_time,
            end_time=record.end_time,
            sell_price=Decimal(str(record.sell_price)),
            buy_price=Decimal(str(record.buy_price)) if record.buy_price is not None else None,
            currency=currency,
        )

    async def list_between(self, start: date, end: date) -> List[CatalogExperience]:
        window_start, window_end = _window(start, end)
        statement = (
            select(CatalogExperienceRecord, CatalogAvailabilityRecord)
            .join(
                CatalogAvailabilityRecord,
                CatalogAvailabilityRecord.experience_id == CatalogExperienceRecord.id,
            )
            .where(CatalogExperienceRecord.is_active == True)  # noqa: E712
            .where(CatalogAvailabilityRecord.start_time >= window_start)
            .where(CatalogAvailabilityRecord.start_time < window_end)
            .order_by(CatalogExperienceRecord.id, CatalogAvailabilityRecord.start_time)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.exec(statement)).all()
        except SQLAlchemyError as e:
            raise CatalogUnavailableError(
                "Local catalog query failed", detail={"operation": "list", "error": str(e)[:200]}
            ) from e

        grouped: Dict[int, tuple] = {}
        for experience, slot in rows:
            entry = grouped.setdefault(experience.id, (experience, []))
            entry[1].append(self._to_slot(slot, experience.currency))
        return [
            _with_window_price(self._to_catalog(experience), slots)
            for experience, slots in grouped.values()
        ]

    async def get(self, experience_id: int) -> Optional[CatalogExperience]:
        try:
            async with self._session_factory() as session:
                record = await session.get(CatalogExperienceRecord, experience_id)
                if record is None:
                    return None
                categories = (
                    await session.exec(
                        select(CatalogCategoryRecord)
                        .where(CatalogCategoryRecord.experience_id == experience_id)
                        .order_by(CatalogCategoryRecord.id)
                    )
                ).all()
        except SQLAlchemyError as e:
            raise CatalogUnavailableError(
                "Local catalog query failed", detail={"operation": "details", "error": str(e)[:200]}
            ) from e
        return self._to_catalog(record, categories)

    async def slots_on(self, experience_id: int, on_date: date) -> List[CatalogSlot]:
        window_start, window_end = _window(on_date, on_date)
        statement = (
            select(CatalogAvailabilityRecord, CatalogExperienceRecord.currency)
            .join(
                CatalogExperienceRecord,
                CatalogAvailabilityRecord.experience_id == CatalogExperienceRecord.id,
            )
            .where(CatalogAvailabilityRecord.experience_id == experience_id)
            .where(CatalogAvailabilityRecord.start_time >= window_start)
            .where(CatalogAvailabilityRecord.start_time < window_end)
            .order_by(CatalogAvailabilityRecord.start_time)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.exec(statement)).all()
        except SQLAlchemyError as e:
            raise CatalogUnavailableError(
                "Local catalog query failed", detail={"operation": "availability", "error": str(e)[:200]}
            ) from e
        return [self._to_slot(slot, currency) for slot, currency in rows]
