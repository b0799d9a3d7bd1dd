from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from app.domain.entities import (
    BareReservation,
    Owner,
    ReservationDraft,
    ReservationWithContext,
    Seat,
    SeatBlock,
    Table,
    Venue,
)
from app.domain.hours import CanonicalVenueHours, WeeklyHoursRow
from app.models import BookingMode, ReservationStatus

# Monday
NOW = datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)


class FakeVenueRepo:
    def __init__(self) -> None:
        self.venues: dict[int, Venue] = {}
        # repository calls in order, shared with the reservation fake
        self.calls: list[str] = []

    def add(self, venue: Venue) -> Venue:
        self.venues[venue.id] = venue
        return venue

    async def lock_venue(self, venue_id: int) -> None:
        self.calls.append("lock_venue")

    async def find_by_id(self, venue_id: int) -> Optional[Venue]:
        self.calls.append("find_by_id")
        return self.venues.get(venue_id)


class FakeReservationRepo:
    def __init__(self, venue_repo: FakeVenueRepo) -> None:
        self.venue_repo = venue_repo
        self.rows: dict[int, BareReservation] = {}
        self._next_id = 1

    def seed(self, **kwargs: Any) -> BareReservation:
        reservation = BareReservation(id=self._next_id, **kwargs)
        self.rows[reservation.id] = reservation
        self._next_id += 1
        return reservation

    async def lock_reservation(self, reservation_id: int) -> Optional[int]:
        self.venue_repo.calls.append("lock_reservation")
        row = self.rows.get(reservation_id)
        return row.venue_id if row else None

    async def find_overlapping(
        self,
        venue_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[BareReservation]:
        self.venue_repo.calls.append("find_overlapping")
        return [
            row
            for row in self.rows.values()
            if row.venue_id == venue_id
            and row.is_active
            and row.start_at < end
            and start < row.end_at
            and row.id != exclude_id
        ]

    async def find_for_venue_window(self, venue_id: int, start: datetime, end: datetime) -> list[BareReservation]:
        return await self.find_overlapping(venue_id, start, end)

    def _context(self, row: BareReservation) -> ReservationWithContext:
        venue = self.venue_repo.venues.get(row.venue_id)
        return ReservationWithContext(
            reservation=row,
            venue_name=venue.name if venue else "",
            venue_owner_id=venue.owner_id if venue else None,
        )

    async def get_with_context(self, reservation_id: int) -> Optional[ReservationWithContext]:
        self.venue_repo.calls.append("get_with_context")
        row = self.rows.get(reservation_id)
        return self._context(row) if row else None

    async def create(self, draft: ReservationDraft) -> BareReservation:
        return self.seed(
            venue_id=draft.venue_id,
            user_id=draft.user_id,
            start_at=draft.start_at,
            end_at=draft.end_at,
            seat_count=draft.seat_count,
            seat_id=draft.seat_id,
            table_id=draft.table_id,
        )

    async def update_status(self, reservation_id: int, status: ReservationStatus) -> BareReservation:
        self.rows[reservation_id] = replace(self.rows[reservation_id], status=status)
        return self.rows[reservation_id]

    async def update_window(self, reservation_id: int, **fields: Any) -> BareReservation:
        self.rows[reservation_id] = replace(self.rows[reservation_id], **fields)
        return self.rows[reservation_id]

    async def list_by_user(self, user_id: int) -> list[ReservationWithContext]:
        return [self._context(row) for row in self.rows.values() if row.user_id == user_id]

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[ReservationWithContext]:
        row = self.rows.get(reservation_id)
        if row is None or row.user_id != user_id:
            return None
        return self._context(row)


class FakeSeatBlockRepo:
    def __init__(self) -> None:
        self.blocks: dict[int, SeatBlock] = {}
        self._next_id = 1

    async def find_overlapping(self, venue_id: int, start: datetime, end: datetime) -> list[SeatBlock]:
        return [
            block
            for block in self.blocks.values()
            if block.venue_id == venue_id and block.start_at < end and start < block.end_at
        ]

    async def create(self, **kwargs: Any) -> SeatBlock:
        kwargs.pop("created_by_user_id", None)
        block = SeatBlock(id=self._next_id, **kwargs)
        self.blocks[block.id] = block
        self._next_id += 1
        return block

    async def get(self, venue_id: int, block_id: int) -> Optional[SeatBlock]:
        block = self.blocks.get(block_id)
        return block if block is not None and block.venue_id == venue_id else None

    async def delete(self, block_id: int) -> None:
        self.blocks.pop(block_id, None)

    async def list_for_venue(self, venue_id: int) -> list[SeatBlock]:
        return [block for block in self.blocks.values() if block.venue_id == venue_id]


class FakeNotificationQueue:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: dict[str, dict[str, Any]] = {}

    async def enqueue(self, **kwargs: Any) -> tuple[bool, int]:
        if self.fail:
            raise RuntimeError("queue unavailable")
        key = kwargs["dedupe_key"]
        if key in self.events:
            return False, list(self.events).index(key) + 1
        self.events[key] = kwargs
        return True, len(self.events)


def build_venue(**overrides: Any) -> Venue:
    seats_table = Table(
        id=10,
        venue_id=1,
        name="Counter",
        seats=(
            Seat(id=1, table_id=10, position=1, price_per_hour=5.0),
            Seat(id=2, table_id=10, position=2, price_per_hour=5.0),
        ),
    )
    group_table = Table(
        id=20,
        venue_id=1,
        name="Board room",
        booking_mode=BookingMode.GROUP,
        table_price_per_hour=60.0,
        seats=tuple(Seat(id=20 + i, table_id=20, position=i) for i in range(1, 5)),
    )
    fields: dict[str, Any] = {
        "id": 1,
        "name": "Study Hall",
        "owner_id": 7,
        "owner": Owner(id=7, email="owner@example.com"),
        "tables": (seats_table, group_table),
        "hours": CanonicalVenueHours(
            timezone="UTC",
            weekly_hours=tuple(WeeklyHoursRow(day, False, "08:00", "22:00") for day in range(7)),
        ),
    }
    fields.update(overrides)
    return Venue(**fields)


@pytest.fixture
def venue_repo() -> FakeVenueRepo:
    repo = FakeVenueRepo()
    repo.add(build_venue())
    return repo


@pytest.fixture
def res_repo(venue_repo: FakeVenueRepo) -> FakeReservationRepo:
    return FakeReservationRepo(venue_repo)


@pytest.fixture
def block_repo() -> FakeSeatBlockRepo:
    return FakeSeatBlockRepo()


@pytest.fixture
def queue() -> FakeNotificationQueue:
    return FakeNotificationQueue()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_venue() -> Any:
    return build_venue
