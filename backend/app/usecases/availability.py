from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..domain.availability import (
    LABEL_HORIZON,
    LABEL_WINDOW,
    SeatAvailability,
    SlotAvailability,
    compute_availability_label,
    partition_seats,
    slot_availability,
    total_capacity,
)
from ..domain.errors import ValidationError
from ..domain.guard import Bookability, venue_bookability
from ..domain.hours import (
    CanonicalVenueHours,
    OpenStatus,
    check_window_within_hours,
    format_weekly_hours,
    get_open_status,
    get_slot_times_for_date,
)
from ..domain.repositories import ReservationRepository, SeatBlockRepository, VenueRepository
from .venues import load_visible_venue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowAvailability:
    venue_id: int
    start_at: datetime
    end_at: datetime
    seat_count: int
    seats: SeatAvailability
    booking_disabled: bool = False
    pause_message: Optional[str] = None


@dataclass(frozen=True)
class DayAvailability:
    venue_id: int
    date: str
    capacity: int
    slots: list[SlotAvailability]


@dataclass(frozen=True)
class VenueStatusView:
    venue_id: int
    open_status: OpenStatus
    label: str
    weekly_hours: list[str]
    bookability: Bookability


async def get_availability(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    block_repo: SeatBlockRepository,
    *,
    venue_id: int,
    start_at: datetime,
    end_at: datetime,
    seat_count: int = 1,
) -> WindowAvailability:
    """Seats and group tables free for [start_at, end_at).

    Requests the venue cannot satisfy at all (too many seats, outside opening
    hours) come back with `seats.error` set instead of raising, since this is
    a display hint rather than a booking attempt.
    """
    venue = await load_visible_venue(venue_repo, venue_id=venue_id)
    if start_at >= end_at:
        raise ValidationError("endAt must be after startAt.")
    if seat_count < 1:
        raise ValidationError("seatCount must be at least 1.")

    bookability = venue_bookability(venue)

    def result(seats: SeatAvailability) -> WindowAvailability:
        return WindowAvailability(
            venue_id=venue.id,
            start_at=start_at,
            end_at=end_at,
            seat_count=seat_count,
            seats=seats,
            booking_disabled=not bookability.can_book,
            pause_message=bookability.pause_message,
        )

    capacity = total_capacity(venue.tables)
    if seat_count > capacity:
        return result(
            SeatAvailability(capacity=capacity, error=f"This venue only has {capacity} seats available for booking.")
        )

    if venue.hours is not None and venue.hours.weekly_hours:
        problem = check_window_within_hours(start_at, end_at, venue.hours)
        if problem is not None:
            return result(SeatAvailability(capacity=capacity, error=problem))

    reservations = await res_repo.find_overlapping(venue.id, start_at, end_at)
    blocks = await block_repo.find_overlapping(venue.id, start_at, end_at)
    seats = partition_seats(venue, start_at, end_at, reservations, blocks, seat_count=seat_count)
    logger.debug(
        "venue %s availability %s-%s: %d free seats, %d busy",
        venue.id,
        start_at.isoformat(),
        end_at.isoformat(),
        len(seats.available_seats),
        len(seats.unavailable_seat_ids),
    )
    return result(seats)


async def get_slots_for_date(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    date: str,
    slot_minutes: int = 60,
) -> DayAvailability:
    venue = await load_visible_venue(venue_repo, venue_id=venue_id)
    capacity = total_capacity(venue.tables)
    if capacity <= 0:
        raise ValidationError("This venue has no reservable seats.")

    hours = venue.hours or CanonicalVenueHours(timezone="UTC")
    slots = get_slot_times_for_date(hours, date, slot_minutes)
    if not slots:
        return DayAvailability(venue_id=venue.id, date=date, capacity=capacity, slots=[])

    reservations = await res_repo.find_for_venue_window(venue.id, slots[0].start, slots[-1].end)
    return DayAvailability(
        venue_id=venue.id,
        date=date,
        capacity=capacity,
        slots=slot_availability(capacity, slots, reservations),
    )


async def get_venue_status(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    *,
    venue_id: int,
    now: datetime,
) -> VenueStatusView:
    venue = await load_visible_venue(venue_repo, venue_id=venue_id)
    hours = venue.hours or CanonicalVenueHours(timezone="UTC")
    open_status = get_open_status(hours, now)
    if open_status.diagnostic_message:
        logger.warning("venue %s hours: %s", venue.id, open_status.diagnostic_message)

    reservations = await res_repo.find_for_venue_window(venue.id, now, now + LABEL_HORIZON + LABEL_WINDOW)
    label = compute_availability_label(
        total_capacity(venue.tables),
        reservations,
        open_status,
        now=now,
        time_zone=hours.timezone,
    )
    return VenueStatusView(
        venue_id=venue.id,
        open_status=open_status,
        label=label,
        weekly_hours=format_weekly_hours(hours),
        bookability=venue_bookability(venue),
    )
