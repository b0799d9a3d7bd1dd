from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_session
from ..domain.errors import DomainError, ValidationError
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemySeatBlockRepository,
    SqlAlchemyVenueRepository,
)
from ..schemas import AvailabilityRead, BookabilityRead, DayAvailabilityRead, VenueStatusRead
from ..usecases import availability as availability_usecase
from ..usecases import venues as venue_usecase
from ..utils.time import parse_iso_instant, utc_now
from .errors import to_http_exception

router = APIRouter(prefix="/venues", tags=["availability"])


def _parse_window(start_at: Optional[str], end_at: Optional[str]) -> tuple[datetime, datetime]:
    if not start_at or not end_at:
        raise ValidationError("startAt and endAt are required (or pass date=YYYY-MM-DD).")
    try:
        return parse_iso_instant(start_at), parse_iso_instant(end_at)
    except ValueError as exc:
        raise ValidationError("startAt and endAt must be ISO 8601 datetimes.") from exc


@router.get("/{venue_id}/availability", response_model=Union[AvailabilityRead, DayAvailabilityRead])
async def get_availability(
    venue_id: int = Path(..., ge=1),
    start_at: Optional[str] = Query(default=None, alias="startAt"),
    end_at: Optional[str] = Query(default=None, alias="endAt"),
    seat_count: int = Query(default=1, alias="seatCount"),
    date: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> Union[AvailabilityRead, DayAvailabilityRead]:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        if date is not None:
            day = await availability_usecase.get_slots_for_date(
                venue_repo,
                res_repo,
                venue_id=venue_id,
                date=date,
                slot_minutes=get_settings().slot_minutes,
            )
            return DayAvailabilityRead.from_result(day)

        start, end = _parse_window(start_at, end_at)
        result = await availability_usecase.get_availability(
            venue_repo,
            res_repo,
            SqlAlchemySeatBlockRepository(session),
            venue_id=venue_id,
            start_at=start,
            end_at=end,
            seat_count=seat_count,
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return AvailabilityRead.from_result(result)


@router.get("/{venue_id}/status", response_model=VenueStatusRead)
async def get_venue_status(
    venue_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> VenueStatusRead:
    try:
        view = await availability_usecase.get_venue_status(
            SqlAlchemyVenueRepository(session),
            SqlAlchemyReservationRepository(session),
            venue_id=venue_id,
            now=utc_now(),
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return VenueStatusRead.from_view(view)


@router.get("/{venue_id}/bookability", response_model=BookabilityRead)
async def get_bookability(
    venue_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> BookabilityRead:
    bookability = await venue_usecase.get_venue_bookability(SqlAlchemyVenueRepository(session), venue_id=venue_id)
    return BookabilityRead.from_bookability(bookability)
