"""Contract every experience source implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Union

from exceptions import ValidationError
from experiences.cache import as_date
from experiences.models import Availability, Experience, ExperienceDetails

DateLike = Union[date, datetime]
ExperienceId = Union[int, str]

DEFAULT_LIST_LIMIT = 50
DEFAULT_LIST_PAGE = 1


def validate_date_range(start_date: DateLike, end_date: DateLike) -> None:
    if as_date(start_date) > as_date(end_date):
        raise ValidationError(
            "start_date must not be after end_date",
            detail={"start_date": str(as_date(start_date)), "end_date": str(as_date(end_date))},
        )


def pagination(filters: Optional[Mapping[str, Any]]) -> tuple[int, int]:
    """Read ``limit`` and ``page`` hints, falling back to the defaults."""
    filters = filters or {}
    try:
        limit = int(filters.get("limit") or DEFAULT_LIST_LIMIT)
        page = int(filters.get("page") or DEFAULT_LIST_PAGE)
    except (TypeError, ValueError):
        raise ValidationError("limit and page must be integers", detail=dict(filters))
    if limit < 1 or page < 1:
        raise ValidationError("limit and page must be positive", detail={"limit": limit, "page": page})
    return limit, page


class SourceAdapter(ABC):
    """One origin of experience data, local or external.

    Adapters own their private caches and their own failure handling.
    ``list_experiences`` must not raise for upstream failures; the aggregator
    still wraps every call so that a misbehaving adapter only loses its own
    contribution.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, used as the ``source`` tag."""

    @property
    def label(self) -> str:
        return self.name

    @property
    def timeout_seconds(self) -> Optional[float]:
        return None

    @abstractmethod
    async def list_experiences(
        self,
        start_date: DateLike,
        end_date: DateLike,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Experience]:
        pass

    @abstractmethod
    async def get_details(self, experience_id: ExperienceId) -> Optional[ExperienceDetails]:
        pass

    @abstractmethod
    async def get_availability(self, experience_id: ExperienceId, on_date: DateLike) -> Availability:
        pass

    @abstractmethod
    async def is_healthy(self) -> bool:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
