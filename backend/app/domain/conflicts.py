"""Half-open interval conflict checks for seats, group tables and seat blocks.

The availability queries and the write path both call these functions, so a
window shown as free is decided by the same rules that later accept or
reject the booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence, TypeVar

from .entities import BareReservation, Seat, SeatBlock, Table, real_seats
from .errors import ConflictError


class Interval(Protocol):
    @property
    def start_at(self) -> datetime: ...

    @property
    def end_at(self) -> datetime: ...


IntervalT = TypeVar("IntervalT", bound=Interval)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def has_overlap(start: datetime, end: datetime, intervals: Iterable[Interval]) -> bool:
    return any(intervals_overlap(start, end, item.start_at, item.end_at) for item in intervals)


def overlapping(
    start: datetime,
    end: datetime,
    items: Iterable[IntervalT],
    *,
    exclude_id: Optional[int] = None,
) -> list[IntervalT]:
    result: list[IntervalT] = []
    for item in items:
        if exclude_id is not None and getattr(item, "id", None) == exclude_id:
            continue
        if getattr(item, "is_active", True) is False:
            continue
        if intervals_overlap(start, end, item.start_at, item.end_at):
            result.append(item)
    return result


def booked_seat_count(start: datetime, end: datetime, reservations: Iterable[BareReservation]) -> int:
    return sum(res.seat_count for res in overlapping(start, end, reservations))


@dataclass(frozen=True)
class BookingTarget:
    """What a booking would occupy: individual seats, or a whole group table."""

    seat_ids: frozenset[int] = frozenset()
    table_ids: frozenset[int] = frozenset()
    group_table_id: Optional[int] = None

    @classmethod
    def for_seats(cls, seats: Iterable[Seat]) -> "BookingTarget":
        seats = list(seats)
        return cls(
            seat_ids=frozenset(seat.id for seat in seats),
            table_ids=frozenset(seat.table_id for seat in seats),
        )

    @classmethod
    def for_table(cls, table: Table) -> "BookingTarget":
        return cls(
            seat_ids=frozenset(seat.id for seat in real_seats(table)),
            table_ids=frozenset({table.id}),
            group_table_id=table.id,
        )

    @property
    def is_group(self) -> bool:
        return self.group_table_id is not None

    def hit_by_reservation(self, reservation: BareReservation) -> bool:
        if self.group_table_id is not None:
            return reservation.table_id == self.group_table_id or reservation.seat_id in self.seat_ids
        if reservation.seat_id is not None:
            return reservation.seat_id in self.seat_ids
        # group booking on the table that holds one of our seats
        return reservation.table_id is not None and reservation.table_id in self.table_ids

    def hit_by_block(self, block: SeatBlock) -> bool:
        return block.is_venue_wide or block.seat_id in self.seat_ids


@dataclass(frozen=True)
class Conflicts:
    reservations: tuple[BareReservation, ...] = ()
    blocks: tuple[SeatBlock, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.reservations or self.blocks)

    def latest_end(self) -> Optional[datetime]:
        ends = [item.end_at for item in (*self.reservations, *self.blocks)]
        return max(ends) if ends else None


def find_conflicts(
    target: BookingTarget,
    start: datetime,
    end: datetime,
    reservations: Sequence[BareReservation],
    blocks: Sequence[SeatBlock] = (),
    *,
    exclude_id: Optional[int] = None,
) -> Conflicts:
    return Conflicts(
        reservations=tuple(
            res for res in overlapping(start, end, reservations, exclude_id=exclude_id) if target.hit_by_reservation(res)
        ),
        blocks=tuple(block for block in overlapping(start, end, blocks) if target.hit_by_block(block)),
    )


def ensure_no_conflict(
    target: BookingTarget,
    start: datetime,
    end: datetime,
    reservations: Sequence[BareReservation],
    blocks: Sequence[SeatBlock] = (),
    *,
    exclude_id: Optional[int] = None,
) -> None:
    conflicts = find_conflicts(target, start, end, reservations, blocks, exclude_id=exclude_id)
    if conflicts.reservations:
        if target.is_group:
            raise ConflictError("This table is not available for that time.")
        raise ConflictError("One or more seats are not available for that time.")
    if conflicts.blocks:
        raise ConflictError("One or more seats are blocked for that time.", code="BLOCKED")
