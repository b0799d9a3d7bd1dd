from datetime import datetime, timedelta, timezone

from app.domain.availability import partition_seats, slot_availability, total_capacity
from app.domain.entities import BareReservation, Seat, SeatBlock, Table, Venue
from app.domain.hours import TimeSlot
from app.models import BookingMode, ReservationStatus

NOW = datetime(2030, 1, 7, 15, 0, tzinfo=timezone.utc)
START = NOW + timedelta(minutes=60)
END = NOW + timedelta(minutes=120)


def _venue(*tables: Table) -> Venue:
    return Venue(id=1, name="Reading Room", tables=tables)


def _two_seat_table() -> Table:
    return Table(
        id=10,
        venue_id=1,
        name="Window",
        seats=(Seat(id=1, table_id=10, position=1, price_per_hour=5.0), Seat(id=2, table_id=10, position=2, price_per_hour=5.0)),
    )


def _group_table(price: float | None = 60.0) -> Table:
    return Table(
        id=20,
        venue_id=1,
        name="Board room",
        booking_mode=BookingMode.GROUP,
        table_price_per_hour=price,
        seats=tuple(Seat(id=200 + i, table_id=20, position=i) for i in range(1, 5)),
    )


def _res(res_id: int, start: datetime, end: datetime, **kwargs: object) -> BareReservation:
    return BareReservation(id=res_id, venue_id=1, user_id=5, start_at=start, end_at=end, **kwargs)  # type: ignore[arg-type]


def test_reserved_seat_is_unavailable_and_neighbour_is_free() -> None:
    venue = _venue(_two_seat_table())
    result = partition_seats(venue, START, END, [_res(1, START, END, seat_id=1, table_id=10)], [])
    assert 1 in result.unavailable_seat_ids
    assert [opt.seat.id for opt in result.available_seats] == [2]


def test_venue_wide_block_makes_every_seat_unavailable() -> None:
    venue = _venue(_two_seat_table(), _group_table())
    block = SeatBlock(id=1, venue_id=1, start_at=START, end_at=END)
    result = partition_seats(venue, START, END, [], [block])
    assert result.available_seats == ()
    assert result.available_group_tables == ()
    assert result.unavailable_seat_ids == frozenset({1, 2, 201, 202, 203, 204})


def test_cancelled_reservation_leaves_seat_free() -> None:
    venue = _venue(_two_seat_table())
    cancelled = _res(1, START, END, seat_id=1, table_id=10, status=ReservationStatus.CANCELLED)
    result = partition_seats(venue, START, END, [cancelled], [])
    assert len(result.available_seats) == 2


def test_next_available_at_is_rounded_conflict_end() -> None:
    venue = _venue(_two_seat_table())
    busy = _res(1, START - timedelta(minutes=30), START + timedelta(minutes=70), seat_id=1, table_id=10)
    result = partition_seats(venue, START, END, [busy], [])
    (option,) = result.unavailable_seats
    assert option.next_available_at == START + timedelta(minutes=75)


def test_group_table_requires_price_and_enough_seats() -> None:
    assert partition_seats(_venue(_group_table(price=None)), START, END, [], []).available_group_tables == ()
    too_small = partition_seats(_venue(_group_table()), START, END, [], [], seat_count=5)
    assert too_small.available_group_tables == ()
    fits = partition_seats(_venue(_group_table()), START, END, [], [], seat_count=3)
    assert [opt.table.id for opt in fits.available_group_tables] == [20]
    assert fits.available_group_tables[0].seat_count == 4


def test_group_reservation_takes_whole_table() -> None:
    venue = _venue(_group_table())
    result = partition_seats(venue, START, END, [_res(1, START, END, table_id=20, seat_count=4)], [])
    assert result.available_group_tables == ()
    assert [opt.table.id for opt in result.unavailable_group_tables] == [20]


def test_adjacent_seat_groups_only_for_multi_seat_requests() -> None:
    table = Table(
        id=30,
        venue_id=1,
        seats=tuple(Seat(id=300 + i, table_id=30, position=i, price_per_hour=4.0) for i in range(1, 5)),
    )
    venue = _venue(table)
    assert partition_seats(venue, START, END, [], []).available_seat_groups == ()

    # seat at position 2 is taken, so the first adjacent pair is 3-4
    taken = _res(1, START, END, seat_id=302, table_id=30)
    result = partition_seats(venue, START, END, [taken], [], seat_count=2)
    (group,) = result.available_seat_groups
    assert [opt.seat.id for opt in group.seats] == [303, 304]
    assert group.total_price_per_hour == 8.0


def test_total_capacity_uses_seat_rows_or_legacy_count() -> None:
    legacy = Table(id=40, venue_id=1, seat_count=6)
    inactive = Table(id=41, venue_id=1, seat_count=10, is_active=False)
    with_rows = Table(
        id=42,
        venue_id=1,
        seat_count=99,
        seats=(Seat(id=1, table_id=42), Seat(id=2, table_id=42, is_active=False)),
    )
    assert total_capacity([legacy, inactive, with_rows]) == 7


def test_slot_capacity_subtracts_overlapping_seat_counts() -> None:
    slot = TimeSlot(start=NOW, end=NOW + timedelta(hours=1))
    reservations = [_res(1, NOW, NOW + timedelta(minutes=15), seat_count=2)]
    (result,) = slot_availability(4, [slot], reservations)
    assert result.available_seats == 2
    assert result.is_fully_booked is False


def test_slot_capacity_floors_at_zero() -> None:
    slots = [TimeSlot(start=NOW + timedelta(hours=i), end=NOW + timedelta(hours=i + 1)) for i in range(3)]
    reservations = [
        _res(1, NOW, NOW + timedelta(hours=2), seat_count=3, table_id=20),
        _res(2, NOW, NOW + timedelta(hours=1), seat_count=3, table_id=21),
    ]
    results = slot_availability(4, slots, reservations)
    assert [slot.available_seats for slot in results] == [0, 1, 4]
    assert [slot.is_fully_booked for slot in results] == [True, False, False]
