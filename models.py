from typing import Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from utils.dates import utc_now


class CatalogExperienceRecord(SQLModel, table=True):
    """An experience the local catalog sells directly."""
    __tablename__ = "catalog_experience"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(index=True, unique=True)
    title: str
    short_description: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    images: Optional[str] = None  # JSON array of gallery URLs
    city: Optional[str] = None
    country_code: Optional[str] = Field(default=None, max_length=2)
    language: str = "en"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    currency: str = "USD"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class CatalogAvailabilityRecord(SQLModel, table=True):
    """One bookable time slot of a catalog experience. Times are UTC."""
    __tablename__ = "catalog_availability"

    id: Optional[int] = Field(default=None, primary_key=True)
    experience_id: int = Field(foreign_key="catalog_experience.id", index=True)
    start_time: datetime = Field(index=True, sa_type=DateTime(timezone=True))
    end_time: datetime = Field(sa_type=DateTime(timezone=True))
    sell_price: Decimal = Field(max_digits=10, decimal_places=2)
    buy_price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)


class CatalogCategoryRecord(SQLModel, table=True):
    __tablename__ = "catalog_category"

    id: Optional[int] = Field(default=None, primary_key=True)
    experience_id: int = Field(foreign_key="catalog_experience.id", index=True)
    name: str
    slug: Optional[str] = None
