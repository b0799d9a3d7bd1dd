from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .conflicts import BookingTarget
from .entities import (
    Actor,
    BareReservation,
    ReservationDraft,
    ReservationWithContext,
    Seat,
    Table,
    Venue,
    effective_seats,
)
from .errors import AuthorizationError, CapacityExceededError, PastTimeError, ValidationError
from .guard import can_edit_venue, ensure_seat_bookable, ensure_table_bookable
from .hours import check_window_within_hours

CONFIRMATION_NOTIFICATION = "booking_confirmation"


@dataclass(frozen=True)
class BookingRequest:
    venue_id: int
    start_at: datetime
    end_at: datetime
    seat_ids: tuple[int, ...] = ()
    table_id: Optional[int] = None
    seat_count: Optional[int] = None

    @property
    def is_table_booking(self) -> bool:
        return self.table_id is not None


@dataclass(frozen=True)
class ResolvedTarget:
    """The seats or group table a booking will occupy, checked against the venue."""

    target: BookingTarget
    seats: tuple[Seat, ...] = ()
    table: Optional[Table] = None
    seat_count: int = 1


def parse_booking_request(
    *,
    venue_id: Optional[int],
    start_at: Optional[datetime],
    end_at: Optional[datetime],
    seat_id: Optional[int] = None,
    seat_ids: Optional[Iterable[int]] = None,
    table_id: Optional[int] = None,
    seat_count: Optional[int] = None,
) -> BookingRequest:
    """Check that a create request names a venue, a window and exactly one kind of target."""
    if venue_id is None:
        raise ValidationError("venueId is required.")
    if start_at is None or end_at is None:
        raise ValidationError("startAt and endAt are required.")

    ids: list[int] = []
    for candidate in ([seat_id] if seat_id is not None else []) + list(seat_ids or []):
        if candidate not in ids:
            ids.append(candidate)

    if ids and table_id is not None:
        raise ValidationError("Book either seats or a table, not both.")
    if table_id is not None:
        if seat_count is None:
            raise ValidationError("seatCount is required when booking a table.")
        if seat_count < 1:
            raise ValidationError("seatCount must be at least 1.")
        return BookingRequest(venue_id, start_at, end_at, table_id=table_id, seat_count=seat_count)
    if not ids:
        raise ValidationError("seatId, seatIds or tableId is required.")
    return BookingRequest(venue_id, start_at, end_at, seat_ids=tuple(ids), seat_count=len(ids))


def validate_window(start_at: datetime, end_at: datetime, now: datetime) -> None:
    """Reject empty or reversed windows, and windows that start before `now`."""
    if start_at >= end_at:
        raise ValidationError("End time must be after start time.")
    if start_at < now:
        raise PastTimeError()


def ensure_within_hours(venue: Venue, start_at: datetime, end_at: datetime) -> None:
    # venues that never configured hours take bookings at any time
    if venue.hours is None or not venue.hours.weekly_hours:
        return
    problem = check_window_within_hours(start_at, end_at, venue.hours)
    if problem is not None:
        raise ValidationError(problem, code="OUTSIDE_HOURS")


def resolve_table_target(venue: Venue, table_id: int, requested: int) -> ResolvedTarget:
    if venue.find_table(table_id) is None and venue.find_seat(table_id) is not None:
        raise ValidationError("tableId refers to a seat. Use seatId to book individual seats.")
    table = ensure_table_bookable(venue, table_id)
    if not table.is_group:
        raise ValidationError("This table is booked by seat. Choose individual seats instead.")
    size = len(effective_seats(table))
    if size < 1:
        raise ValidationError("This table has no bookable seats.")
    if requested > size:
        raise CapacityExceededError(f"This table seats at most {size}.")
    return ResolvedTarget(target=BookingTarget.for_table(table), table=table, seat_count=size)


def resolve_seat_target(venue: Venue, seat_ids: Iterable[int]) -> ResolvedTarget:
    seats: list[Seat] = []
    for seat_id in seat_ids:
        seat = ensure_seat_bookable(venue, seat_id)
        table = venue.find_table(seat.table_id)
        if table is not None and table.is_group:
            raise ValidationError("Seats at a group table can only be booked as a whole table.")
        seats.append(seat)
    if not seats:
        raise ValidationError("At least one seat is required.")
    return ResolvedTarget(target=BookingTarget.for_seats(seats), seats=tuple(seats), seat_count=1)


def resolve_target(venue: Venue, request: BookingRequest) -> ResolvedTarget:
    if request.table_id is not None:
        return resolve_table_target(venue, request.table_id, request.seat_count or 1)
    return resolve_seat_target(venue, request.seat_ids)


def build_drafts(resolved: ResolvedTarget, *, venue_id: int, user_id: int, start_at: datetime, end_at: datetime) -> list[ReservationDraft]:
    """One row for a group table, one row per seat otherwise."""
    if resolved.table is not None:
        return [
            ReservationDraft(
                venue_id=venue_id,
                user_id=user_id,
                start_at=start_at,
                end_at=end_at,
                seat_count=resolved.seat_count,
                table_id=resolved.table.id,
            )
        ]
    return [
        ReservationDraft(
            venue_id=venue_id,
            user_id=user_id,
            start_at=start_at,
            end_at=end_at,
            seat_count=1,
            seat_id=seat.id,
            table_id=seat.table_id,
        )
        for seat in resolved.seats
    ]


def resolve_edit_target(venue: Venue, reservation: BareReservation, seat_id: Optional[int]) -> ResolvedTarget:
    if reservation.seat_id is None and reservation.table_id is not None:
        if seat_id is not None:
            raise ValidationError("A table reservation cannot be moved to a single seat.")
        table = ensure_table_bookable(venue, reservation.table_id)
        return ResolvedTarget(target=BookingTarget.for_table(table), table=table, seat_count=reservation.seat_count)
    target_seat_id = seat_id if seat_id is not None else reservation.seat_id
    if target_seat_id is None:
        raise ValidationError("Reservation has no seat to edit.")
    return resolve_seat_target(venue, [target_seat_id])


def ensure_can_cancel(actor: Actor, context: ReservationWithContext) -> None:
    if context.reservation.user_id == actor.id:
        return
    if can_edit_venue(actor, context.venue_owner_id):
        return
    raise AuthorizationError("You cannot cancel this reservation.")


def ensure_can_edit(actor: Actor, context: ReservationWithContext) -> None:
    # reservation owners may cancel but never move their booking
    if not can_edit_venue(actor, context.venue_owner_id):
        raise AuthorizationError("Only the venue owner can change reservation times or seats.")


def confirmation_dedupe_key(reservation_id: int, recipient: str) -> str:
    return f"{CONFIRMATION_NOTIFICATION}:{reservation_id}:{recipient}"
