from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..models import BookingMode, OnboardingStatus, ReservationStatus, UserStatus, VenueStatus
from .hours import CanonicalVenueHours


@dataclass(frozen=True)
class Seat:
    id: int
    table_id: int
    price_per_hour: float = 0.0
    is_active: bool = True
    label: Optional[str] = None
    position: Optional[int] = None


@dataclass(frozen=True)
class SyntheticSeats:
    """Capacity stand-in for legacy tables that have a seat count but no Seat rows."""

    table_id: int
    count: int

    def __len__(self) -> int:
        return max(self.count, 0)


EffectiveSeats = Union[tuple[Seat, ...], SyntheticSeats]


@dataclass(frozen=True)
class Table:
    id: int
    venue_id: int
    seat_count: int = 0
    booking_mode: BookingMode = BookingMode.INDIVIDUAL
    table_price_per_hour: Optional[float] = None
    is_active: bool = True
    name: Optional[str] = None
    seats: tuple[Seat, ...] = ()

    @property
    def is_group(self) -> bool:
        return self.booking_mode == BookingMode.GROUP


def effective_seats(table: Table) -> EffectiveSeats:
    """Active Seat rows when the table has any, else a synthetic pool of `seat_count`."""
    if table.seats:
        return tuple(seat for seat in table.seats if seat.is_active)
    return SyntheticSeats(table_id=table.id, count=table.seat_count)


def real_seats(table: Table) -> tuple[Seat, ...]:
    seats = effective_seats(table)
    return seats if isinstance(seats, tuple) else ()


@dataclass(frozen=True)
class Owner:
    id: int
    status: UserStatus = UserStatus.ACTIVE
    email: Optional[str] = None


@dataclass(frozen=True)
class Venue:
    id: int
    name: str = ""
    owner_id: Optional[int] = None
    status: VenueStatus = VenueStatus.ACTIVE
    onboarding_status: OnboardingStatus = OnboardingStatus.APPROVED
    pause_message: Optional[str] = None
    deleted_at: Optional[datetime] = None
    owner: Optional[Owner] = None
    tables: tuple[Table, ...] = ()
    hours: Optional[CanonicalVenueHours] = None

    def find_table(self, table_id: int) -> Optional[Table]:
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def find_seat(self, seat_id: int) -> Optional[Seat]:
        for table in self.tables:
            for seat in table.seats:
                if seat.id == seat_id:
                    return seat
        return None

    def all_seat_ids(self) -> set[int]:
        return {seat.id for table in self.tables for seat in table.seats}


@dataclass(frozen=True)
class BareReservation:
    id: int
    venue_id: int
    user_id: int
    start_at: datetime
    end_at: datetime
    seat_count: int = 1
    seat_id: Optional[int] = None
    table_id: Optional[int] = None
    status: ReservationStatus = ReservationStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @property
    def is_group(self) -> bool:
        return self.seat_id is None and self.table_id is not None


@dataclass(frozen=True)
class ReservationWithContext:
    reservation: BareReservation
    venue_name: str = ""
    venue_owner_id: Optional[int] = None
    venue_owner_email: Optional[str] = None
    user_email: Optional[str] = None
    table_name: Optional[str] = None
    seat_label: Optional[str] = None


@dataclass(frozen=True)
class SeatBlock:
    id: int
    venue_id: int
    start_at: datetime
    end_at: datetime
    seat_id: Optional[int] = None
    reason: Optional[str] = None

    @property
    def is_venue_wide(self) -> bool:
        return self.seat_id is None


@dataclass(frozen=True)
class Actor:
    id: int
    email: Optional[str] = None
    is_admin: bool = False


@dataclass(frozen=True)
class ReservationDraft:
    """A row the orchestrator is about to persist."""

    venue_id: int
    user_id: int
    start_at: datetime
    end_at: datetime
    seat_count: int
    seat_id: Optional[int] = None
    table_id: Optional[int] = None
