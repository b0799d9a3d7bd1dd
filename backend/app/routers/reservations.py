from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user, get_session
from ..domain.entities import Actor
from ..domain.errors import DomainError, ValidationError
from ..domain.services import parse_booking_request
from ..infrastructure.notifications import SqlAlchemyNotificationQueue
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemySeatBlockRepository,
    SqlAlchemyVenueRepository,
)
from ..models import ReservationStatus
from ..schemas import BookingCreated, ReservationCreate, ReservationPatch, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import utc_now
from .errors import audit_failure, to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> BookingCreated:
    venue_repo = SqlAlchemyVenueRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    block_repo = SqlAlchemySeatBlockRepository(session)
    notifications = SqlAlchemyNotificationQueue(session)
    async with session.begin():
        try:
            request = parse_booking_request(
                venue_id=payload.venue_id,
                start_at=payload.start_at,
                end_at=payload.end_at,
                seat_id=payload.seat_id,
                seat_ids=payload.seat_ids,
                table_id=payload.table_id,
                seat_count=payload.seat_count,
            )
            booking = await reservation_usecase.create_reservation(
                venue_repo,
                res_repo,
                block_repo,
                notifications,
                request=request,
                actor=actor,
                now=utc_now(),
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    try:
        for reservation in booking.reservations:
            emit_audit_log(
                action="reservation.created",
                venue_id=reservation.venue_id,
                reservation_id=reservation.id,
                user_id=reservation.user_id,
                seat_id=reservation.seat_id,
                table_id=reservation.table_id,
                seat_count=reservation.seat_count,
                start_at=reservation.start_at,
                end_at=reservation.end_at,
                status_to=reservation.status,
            )
    except RuntimeError:
        raise audit_failure()

    return BookingCreated(
        venue_id=booking.venue.id,
        seat_count=sum(res.seat_count for res in booking.reservations),
        reservations=[ReservationRead.from_entity(res) for res in booking.reservations],
    )


@router.patch("/reservations/{reservation_id}", response_model=ReservationRead)
async def update_reservation(
    payload: ReservationPatch,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            if payload.is_cancel and payload.is_edit:
                raise ValidationError("Cancel and edit cannot be combined in one request.")
            if payload.is_cancel:
                updated, previous_status = await reservation_usecase.cancel_reservation(
                    res_repo,
                    reservation_id=reservation_id,
                    actor=actor,
                )
            elif payload.is_edit:
                before, updated = await reservation_usecase.edit_reservation(
                    SqlAlchemyVenueRepository(session),
                    res_repo,
                    SqlAlchemySeatBlockRepository(session),
                    reservation_id=reservation_id,
                    actor=actor,
                    now=utc_now(),
                    start_at=payload.start_at,
                    end_at=payload.end_at,
                    seat_id=payload.seat_id,
                )
            else:
                raise ValidationError("Nothing to update.")
        except DomainError as exc:
            raise to_http_exception(exc)

    try:
        if payload.is_cancel:
            emit_audit_log(
                action="reservation.cancelled",
                venue_id=updated.venue_id,
                reservation_id=updated.id,
                user_id=updated.user_id,
                seat_id=updated.seat_id,
                table_id=updated.table_id,
                seat_count=updated.seat_count,
                status_from=previous_status,
                status_to=ReservationStatus.CANCELLED,
            )
        else:
            emit_audit_log(
                action="reservation.edited",
                venue_id=updated.venue_id,
                reservation_id=updated.id,
                user_id=updated.user_id,
                seat_id=updated.seat_id,
                table_id=updated.table_id,
                seat_count=updated.seat_count,
                start_at=updated.start_at,
                end_at=updated.end_at,
                extra={
                    "start_at_from": before.start_at.isoformat(),
                    "end_at_from": before.end_at.isoformat(),
                    "seat_id_from": before.seat_id,
                },
            )
    except RuntimeError:
        raise audit_failure()

    return ReservationRead.from_entity(updated)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_user_reservations(res_repo, user_id=actor.id)
    return [ReservationRead.from_context(row) for row in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    row = await reservation_usecase.get_user_reservation(res_repo, reservation_id=reservation_id, user_id=actor.id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Reservation not found.", "code": "NOT_FOUND"},
        )
    return ReservationRead.from_context(row)
