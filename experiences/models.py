"""Canonical models every experience source is normalized into."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.dates import as_utc, utc_now

LOCAL_SOURCE = "local"

ImageRole = Literal["thumbnail", "gallery"]
SourceStatus = Literal["ok", "error", "timeout", "skipped"]


class Money(BaseModel):
    """Amount plus ISO-4217 currency code."""

    amount: Decimal = Field(..., ge=0)
    currency: str = "USD"

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: Optional[str]) -> str:
        code = (value or "USD").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"invalid currency code: {value!r}")
        return code


class Experience(BaseModel):
    """A listing, regardless of the source it came from."""

    id: int
    source: str = LOCAL_SOURCE
    provider_id: Optional[str] = None
    provider: Optional[str] = None
    slug: str
    title: str
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    sell_price: Optional[Money] = None
    buy_price: Optional[Money] = None
    city: Optional[str] = None
    country_code: Optional[str] = None
    language: str = "en"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = Field(None, ge=0, le=5)

    @field_validator("source")
    @classmethod
    def _require_source(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("source must be a non-empty tag")
        return value

    @property
    def is_local(self) -> bool:
        return self.source == LOCAL_SOURCE


class ExperienceImage(BaseModel):
    url: str
    role: ImageRole = "gallery"


class CategoryRef(BaseModel):
    id: Optional[int] = None
    name: str
    slug: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_name(cls, value: Any) -> Any:
        # Providers often send categories as plain strings
        if isinstance(value, str):
            return {"name": value}
        return value


class ExperienceDetails(Experience):
    description: Optional[str] = None
    images: List[ExperienceImage] = Field(default_factory=list)
    categories: List[CategoryRef] = Field(default_factory=list)


class PriceSlot(BaseModel):
    start_time: datetime
    end_time: datetime
    sell_price: Decimal = Field(..., ge=0)
    currency: str = "USD"

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Availability(BaseModel):
    """Bookability of one experience on one calendar date."""

    available: bool = False
    prices: List[PriceSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_prices_when_unavailable(self) -> "Availability":
        if not self.available and self.prices:
            self.prices = []
        return self

    @classmethod
    def unavailable(cls) -> "Availability":
        return cls(available=False, prices=[])


class SourceStatusSnapshot(BaseModel):
    source: str
    operation: str
    status: SourceStatus
    result_count: int = 0
    latency_ms: Optional[int] = None
    message: Optional[str] = None


class AggregatedListing(BaseModel):
    """Merged listing plus the per-source outcome that produced it."""

    experiences: List[Experience] = Field(default_factory=list)
    source_statuses: List[SourceStatusSnapshot] = Field(default_factory=list)
    from_cache: bool = False
    generated_at: datetime = Field(default_factory=utc_now)

    def source_summary(self) -> Dict[str, SourceStatusSnapshot]:
        return {status.source: status for status in self.source_statuses}
