"""Experience API routes: merged listing, details, availability and source status."""

from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from exceptions import ResourceNotFoundError, ValidationError
from experiences.aggregator import ExperienceAggregator
from experiences.models import Availability, Experience, ExperienceDetails

router = APIRouter(prefix="/api/v1/experiences", tags=["experiences"])


# ── Response Models ──────────────────────────────────────────────────────────


class ListMeta(BaseModel):
    total: int
    page: int
    limit: int


class ExperienceListResponse(BaseModel):
    data: List[Experience]
    meta: ListMeta


class ExperienceDetailsResponse(BaseModel):
    experience: ExperienceDetails


class ProviderStatusResponse(BaseModel):
    available_providers: List[str]
    total: int


# ── Dependencies ─────────────────────────────────────────────────────────────


def get_aggregator(request: Request) -> ExperienceAggregator:
    return request.app.state.aggregator


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field}", detail={"field": field, "value": value})


def _date_window(
    aggregator: ExperienceAggregator, start_date: Optional[str], end_date: Optional[str]
) -> tuple:
    start = _parse_date(start_date, "start_date") or date.today()
    end = _parse_date(end_date, "end_date") or start + timedelta(
        days=aggregator.config.default_window_days
    )
    return start, end


def _page(experiences: List[Experience], page: int, limit: int) -> ExperienceListResponse:
    offset = (page - 1) * limit
    return ExperienceListResponse(
        data=experiences[offset:offset + limit],
        meta=ListMeta(total=len(experiences), page=page, limit=limit),
    )


# ── Routes ───────────────────────────────────────────────────────────────────


@router.get("", response_model=ExperienceListResponse)
async def list_experiences(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=100),
    page: int = Query(1, ge=1),
    aggregator: ExperienceAggregator = Depends(get_aggregator),
):
    start, end = _date_window(aggregator, start_date, end_date)
    limit = limit or aggregator.config.default_limit
    experiences = await aggregator.list_all(start, end)
    return _page(experiences, page, limit)


@router.get("/providers", response_model=ProviderStatusResponse)
async def provider_status(aggregator: ExperienceAggregator = Depends(get_aggregator)):
    names = await aggregator.list_provider_names()
    return ProviderStatusResponse(available_providers=names, total=len(names))


@router.get("/availability", response_model=Availability)
async def experience_availability(
    experience_id: Optional[str] = None,
    date: Optional[str] = None,
    aggregator: ExperienceAggregator = Depends(get_aggregator),
):
    if not experience_id or not date:
        raise ValidationError("Experience ID and date are required")
    on_date = _parse_date(date, "date")
    return await aggregator.get_availability(experience_id, on_date)


@router.get("/details/{experience_id}", response_model=ExperienceDetailsResponse)
async def experience_details(
    experience_id: str,
    aggregator: ExperienceAggregator = Depends(get_aggregator),
):
    details = await aggregator.get_details(experience_id)
    if details is None:
        raise ResourceNotFoundError("Experience not found", detail={"id": experience_id})
    return ExperienceDetailsResponse(experience=details)


@router.get("/source", response_model=ExperienceListResponse)
@router.get("/source/{source}", response_model=ExperienceListResponse)
async def list_experiences_by_source(
    source: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=100),
    page: int = Query(1, ge=1),
    aggregator: ExperienceAggregator = Depends(get_aggregator),
):
    source = source or aggregator.config.default_source
    start, end = _date_window(aggregator, start_date, end_date)
    limit = limit or aggregator.config.default_limit
    experiences = await aggregator.list_by_source(source, start, end)
    return _page(experiences, page, limit)
