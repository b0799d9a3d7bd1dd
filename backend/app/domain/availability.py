"""Seat/table availability for a window, per-slot capacity for a day, and the
"available now / next available / sold out" label shown on venue cards."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..utils.time import as_utc
from .conflicts import BookingTarget, booked_seat_count, find_conflicts
from .entities import BareReservation, Seat, SeatBlock, Table, Venue, effective_seats, real_seats
from .hours import WEEKDAY_LONG, OpenStatus, TimeSlot, format_time_label, resolve_timezone

LABEL_STEP = timedelta(minutes=15)
LABEL_WINDOW = timedelta(hours=1)
LABEL_HORIZON = timedelta(hours=12)
LABEL_TIMEZONE = "UTC"

SOLD_OUT = "Sold out for now"
CURRENTLY_CLOSED = "Currently Closed"
AVAILABLE_NOW = "Available now"


@dataclass(frozen=True)
class SeatOption:
    seat: Seat
    table_name: Optional[str] = None
    next_available_at: Optional[datetime] = None


@dataclass(frozen=True)
class GroupTableOption:
    table: Table
    seat_count: int
    next_available_at: Optional[datetime] = None


@dataclass(frozen=True)
class SeatGroup:
    table_id: int
    seats: tuple[SeatOption, ...]
    total_price_per_hour: float


@dataclass(frozen=True)
class SeatAvailability:
    capacity: int
    available_seats: tuple[SeatOption, ...] = ()
    unavailable_seats: tuple[SeatOption, ...] = ()
    unavailable_seat_ids: frozenset[int] = frozenset()
    available_group_tables: tuple[GroupTableOption, ...] = ()
    unavailable_group_tables: tuple[GroupTableOption, ...] = ()
    available_seat_groups: tuple[SeatGroup, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class SlotAvailability:
    start: datetime
    end: datetime
    available_seats: int
    is_fully_booked: bool


def total_capacity(tables: Iterable[Table]) -> int:
    """Reservable seats across active tables; legacy tables count their `seat_count`."""
    return sum(len(effective_seats(table)) for table in tables if table.is_active)


def round_up_to_next_15_minutes(moment: datetime) -> datetime:
    base = moment.replace(second=0, microsecond=0)
    remainder = moment.minute % 15
    if remainder:
        return base + timedelta(minutes=15 - remainder)
    if moment.second or moment.microsecond:
        return base + timedelta(minutes=15)
    return base


def _next_available_at(latest_end: Optional[datetime], requested_start: datetime) -> Optional[datetime]:
    if latest_end is None:
        return None
    rounded = round_up_to_next_15_minutes(latest_end)
    return rounded if rounded > requested_start else None


def _find_adjacent(options: Sequence[SeatOption], count: int) -> Optional[tuple[SeatOption, ...]]:
    if len(options) < count:
        return None
    ordered = sorted(options, key=lambda opt: (opt.seat.position is None, opt.seat.position or 0))
    for index in range(len(ordered) - count + 1):
        candidate = ordered[index:index + count]
        positions = [opt.seat.position for opt in candidate]
        if any(position is None for position in positions):
            continue
        if all(b == a + 1 for a, b in zip(positions, positions[1:])):  # type: ignore[operator]
            return tuple(candidate)
    return None


def partition_seats(
    venue: Venue,
    start: datetime,
    end: datetime,
    reservations: Sequence[BareReservation],
    blocks: Sequence[SeatBlock],
    *,
    seat_count: int = 1,
) -> SeatAvailability:
    available: list[SeatOption] = []
    unavailable: list[SeatOption] = []
    unavailable_ids: set[int] = set()
    free_by_table: dict[int, list[SeatOption]] = {}
    group_free: list[GroupTableOption] = []
    group_taken: list[GroupTableOption] = []

    for table in venue.tables:
        if not table.is_active:
            continue
        if table.is_group:
            if not table.table_price_per_hour or table.table_price_per_hour <= 0:
                continue
            size = len(effective_seats(table))
            conflicts = find_conflicts(BookingTarget.for_table(table), start, end, reservations, blocks)
            if conflicts:
                unavailable_ids.update(seat.id for seat in real_seats(table))
            if size < seat_count:
                continue
            if conflicts:
                group_taken.append(
                    GroupTableOption(table, size, _next_available_at(conflicts.latest_end(), start))
                )
            else:
                group_free.append(GroupTableOption(table, size))
            continue

        for seat in real_seats(table):
            conflicts = find_conflicts(BookingTarget.for_seats([seat]), start, end, reservations, blocks)
            if conflicts:
                unavailable_ids.add(seat.id)
                unavailable.append(SeatOption(seat, table.name, _next_available_at(conflicts.latest_end(), start)))
            else:
                option = SeatOption(seat, table.name)
                available.append(option)
                free_by_table.setdefault(table.id, []).append(option)

    groups: list[SeatGroup] = []
    if seat_count > 1:
        for table_id, options in free_by_table.items():
            run = _find_adjacent(options, seat_count)
            if run is not None:
                groups.append(
                    SeatGroup(
                        table_id=table_id,
                        seats=run,
                        total_price_per_hour=sum(opt.seat.price_per_hour for opt in run),
                    )
                )

    return SeatAvailability(
        capacity=total_capacity(venue.tables),
        available_seats=tuple(available),
        unavailable_seats=tuple(unavailable),
        unavailable_seat_ids=frozenset(unavailable_ids),
        available_group_tables=tuple(group_free),
        unavailable_group_tables=tuple(group_taken),
        available_seat_groups=tuple(groups),
    )


def slot_availability(
    capacity: int,
    slots: Iterable[TimeSlot],
    reservations: Sequence[BareReservation],
) -> list[SlotAvailability]:
    result: list[SlotAvailability] = []
    for slot in slots:
        available = max(0, capacity - booked_seat_count(slot.start, slot.end, reservations))
        result.append(
            SlotAvailability(start=slot.start, end=slot.end, available_seats=available, is_fully_booked=available == 0)
        )
    return result


def _opens_label(next_open_at: datetime, now: datetime, time_zone: str) -> str:
    tz = resolve_timezone(time_zone)
    today = now.astimezone(tz).date()
    opening_local = next_open_at.astimezone(tz)
    time_text = format_time_label(next_open_at, time_zone)
    if opening_local.date() == today:
        return f"Opens at {time_text}"
    if opening_local.date() == today + timedelta(days=1):
        return f"Opens tomorrow at {time_text}"
    day_name = WEEKDAY_LONG[(opening_local.weekday() + 1) % 7]
    return f"Opens {day_name} at {time_text}"


def compute_availability_label(
    capacity: int,
    reservations: Sequence[BareReservation],
    open_status: Optional[OpenStatus],
    *,
    now: datetime,
    time_zone: Optional[str] = None,
) -> str:
    """Card label for a venue.

    Closed venues report when they open next. Open venues scan 1-hour windows
    in 15-minute steps over the next 12 hours; a window is free while the
    seats booked across it stay below capacity.
    """
    if capacity <= 0:
        return SOLD_OUT
    if open_status is None:
        return CURRENTLY_CLOSED

    now = as_utc(now)
    time_zone = time_zone or LABEL_TIMEZONE

    if not open_status.is_open:
        if open_status.next_open_at is None:
            return CURRENTLY_CLOSED
        return _opens_label(as_utc(open_status.next_open_at), now, time_zone)

    start_base = round_up_to_next_15_minutes(now)
    offset = timedelta(0)
    while offset < LABEL_HORIZON:
        window_start = start_base + offset
        if booked_seat_count(window_start, window_start + LABEL_WINDOW, reservations) < capacity:
            if offset == timedelta(0):
                return AVAILABLE_NOW
            return f"Next availability @ {format_time_label(window_start, time_zone)}"
        offset += LABEL_STEP
    return SOLD_OUT
