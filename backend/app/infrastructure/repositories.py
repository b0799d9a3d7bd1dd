from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..config import get_settings
from ..domain import entities
from ..domain.errors import NotFoundError
from ..domain.hours import DEFAULT_TIMEZONE, CanonicalVenueHours, WeeklyHoursRow, resolve_timezone, sorted_rows
from ..domain.repositories import ReservationRepository, SeatBlockRepository, VenueRepository
from ..models import Reservation, ReservationStatus, SeatBlock, Venue, VenueTable
from ..utils.time import to_utc_naive, utc_naive_to_aware


def _now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_table(table: VenueTable) -> entities.Table:
    return entities.Table(
        id=table.id,
        venue_id=table.venue_id,
        seat_count=table.seat_count,
        booking_mode=table.booking_mode,
        table_price_per_hour=table.table_price_per_hour,
        is_active=table.is_active,
        name=table.name,
        seats=tuple(
            entities.Seat(
                id=seat.id,
                table_id=seat.table_id,
                price_per_hour=seat.price_per_hour or 0.0,
                is_active=seat.is_active,
                label=seat.label,
                position=seat.position,
            )
            for seat in table.seats
        ),
    )


def _to_venue(venue: Venue, default_timezone: str = DEFAULT_TIMEZONE) -> entities.Venue:
    owner = None
    if venue.owner is not None:
        owner = entities.Owner(id=venue.owner.id, status=venue.owner.status, email=venue.owner.email)
    hours = CanonicalVenueHours(
        timezone=resolve_timezone(venue.timezone, fallback=default_timezone).key,
        weekly_hours=sorted_rows(
            WeeklyHoursRow(
                day_of_week=row.day_of_week,
                is_closed=row.is_closed,
                open_time=row.open_time,
                close_time=row.close_time,
            )
            for row in venue.hours
        ),
    )
    return entities.Venue(
        id=venue.id,
        name=venue.name,
        owner_id=venue.owner_id,
        status=venue.status,
        onboarding_status=venue.onboarding_status,
        pause_message=venue.pause_message,
        deleted_at=utc_naive_to_aware(venue.deleted_at) if venue.deleted_at is not None else None,
        owner=owner,
        tables=tuple(_to_table(table) for table in venue.tables),
        hours=hours,
    )


def _to_reservation(reservation: Reservation) -> entities.BareReservation:
    return entities.BareReservation(
        id=reservation.id,
        venue_id=reservation.venue_id,
        user_id=reservation.user_id,
        start_at=utc_naive_to_aware(reservation.start_at),
        end_at=utc_naive_to_aware(reservation.end_at),
        seat_count=reservation.seat_count,
        seat_id=reservation.seat_id,
        table_id=reservation.table_id,
        status=reservation.status,
    )


def _to_context(reservation: Reservation) -> entities.ReservationWithContext:
    venue = reservation.venue
    owner = venue.owner if venue is not None else None
    return entities.ReservationWithContext(
        reservation=_to_reservation(reservation),
        venue_name=venue.name if venue is not None else "",
        venue_owner_id=venue.owner_id if venue is not None else None,
        venue_owner_email=owner.email if owner is not None else None,
        user_email=reservation.user.email if reservation.user is not None else None,
        table_name=reservation.table.name if reservation.table is not None else None,
        seat_label=reservation.seat.label if reservation.seat is not None else None,
    )


def _to_block(block: SeatBlock) -> entities.SeatBlock:
    return entities.SeatBlock(
        id=block.id,
        venue_id=block.venue_id,
        start_at=utc_naive_to_aware(block.start_at),
        end_at=utc_naive_to_aware(block.end_at),
        seat_id=block.seat_id,
        reason=block.reason,
    )


def _context_query() -> Select[tuple[Reservation]]:
    return select(Reservation).options(
        joinedload(Reservation.venue).joinedload(Venue.owner),
        joinedload(Reservation.user),
        joinedload(Reservation.table),
        joinedload(Reservation.seat),
    )


class SqlAlchemyVenueRepository(VenueRepository):
    def __init__(self, session: AsyncSession, default_timezone: Optional[str] = None) -> None:
        self.session = session
        self.default_timezone = default_timezone or get_settings().default_timezone

    async def lock_venue(self, venue_id: int) -> None:
        # must be the first statement of the transaction: the REPEATABLE READ
        # snapshot starts at the first plain read, which then sees every
        # booking the previous lock holder committed
        stmt = select(Venue.id).where(Venue.id == venue_id).with_for_update()
        await self.session.execute(stmt)

    async def find_by_id(self, venue_id: int) -> Optional[entities.Venue]:
        stmt = (
            select(Venue)
            .where(Venue.id == venue_id)
            .options(
                selectinload(Venue.owner),
                selectinload(Venue.hours),
                selectinload(Venue.tables).selectinload(VenueTable.seats),
            )
        )
        venue = await self.session.scalar(stmt)
        return _to_venue(venue, self.default_timezone) if isinstance(venue, Venue) else None


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_reservation(self, reservation_id: int) -> Optional[int]:
        """Lock the reservation row and return its venue id."""
        stmt = select(Reservation.venue_id).where(Reservation.id == reservation_id).with_for_update()
        return await self.session.scalar(stmt)

    async def find_overlapping(
        self,
        venue_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[entities.BareReservation]:
        stmt = select(Reservation).where(
            Reservation.venue_id == venue_id,
            Reservation.status == ReservationStatus.ACTIVE,
            Reservation.start_at < to_utc_naive(end),
            Reservation.end_at > to_utc_naive(start),
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        rows = await self.session.scalars(stmt.order_by(Reservation.start_at, Reservation.id))
        return [_to_reservation(row) for row in rows]

    async def find_for_venue_window(self, venue_id: int, start: datetime, end: datetime) -> list[entities.BareReservation]:
        return await self.find_overlapping(venue_id, start, end)

    async def get_with_context(self, reservation_id: int) -> Optional[entities.ReservationWithContext]:
        reservation = await self.session.scalar(_context_query().where(Reservation.id == reservation_id))
        return _to_context(reservation) if isinstance(reservation, Reservation) else None

    async def create(self, draft: entities.ReservationDraft) -> entities.BareReservation:
        now = _now_naive()
        reservation = Reservation(
            venue_id=draft.venue_id,
            user_id=draft.user_id,
            seat_id=draft.seat_id,
            table_id=draft.table_id,
            seat_count=draft.seat_count,
            start_at=to_utc_naive(draft.start_at),
            end_at=to_utc_naive(draft.end_at),
            status=ReservationStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return _to_reservation(reservation)

    async def _get_for_update(self, reservation_id: int) -> Reservation:
        reservation = await self.session.get(Reservation, reservation_id, with_for_update=True)
        if reservation is None:
            raise NotFoundError("Reservation not found.")
        return reservation

    async def update_status(self, reservation_id: int, status: ReservationStatus) -> entities.BareReservation:
        reservation = await self._get_for_update(reservation_id)
        reservation.status = status
        reservation.updated_at = _now_naive()
        await self.session.flush()
        return _to_reservation(reservation)

    async def update_window(
        self,
        reservation_id: int,
        *,
        start_at: datetime,
        end_at: datetime,
        seat_id: Optional[int],
        table_id: Optional[int],
    ) -> entities.BareReservation:
        reservation = await self._get_for_update(reservation_id)
        reservation.start_at = to_utc_naive(start_at)
        reservation.end_at = to_utc_naive(end_at)
        reservation.seat_id = seat_id
        reservation.table_id = table_id
        reservation.updated_at = _now_naive()
        await self.session.flush()
        return _to_reservation(reservation)

    async def list_by_user(self, user_id: int) -> list[entities.ReservationWithContext]:
        stmt = _context_query().where(Reservation.user_id == user_id).order_by(Reservation.start_at.desc())
        rows = await self.session.scalars(stmt)
        return [_to_context(row) for row in rows.unique()]

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[entities.ReservationWithContext]:
        stmt = _context_query().where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        reservation = await self.session.scalar(stmt)
        return _to_context(reservation) if isinstance(reservation, Reservation) else None


class SqlAlchemySeatBlockRepository(SeatBlockRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_overlapping(self, venue_id: int, start: datetime, end: datetime) -> list[entities.SeatBlock]:
        stmt = select(SeatBlock).where(
            SeatBlock.venue_id == venue_id,
            SeatBlock.start_at < to_utc_naive(end),
            SeatBlock.end_at > to_utc_naive(start),
        )
        rows = await self.session.scalars(stmt.order_by(SeatBlock.start_at, SeatBlock.id))
        return [_to_block(row) for row in rows]

    async def create(
        self,
        *,
        venue_id: int,
        seat_id: Optional[int],
        start_at: datetime,
        end_at: datetime,
        reason: Optional[str],
        created_by_user_id: Optional[int],
    ) -> entities.SeatBlock:
        block = SeatBlock(
            venue_id=venue_id,
            seat_id=seat_id,
            start_at=to_utc_naive(start_at),
            end_at=to_utc_naive(end_at),
            reason=reason,
            created_by_user_id=created_by_user_id,
            created_at=_now_naive(),
        )
        self.session.add(block)
        await self.session.flush()
        return _to_block(block)

    async def get(self, venue_id: int, block_id: int) -> Optional[entities.SeatBlock]:
        block = await self.session.scalar(
            select(SeatBlock).where(SeatBlock.id == block_id, SeatBlock.venue_id == venue_id)
        )
        return _to_block(block) if isinstance(block, SeatBlock) else None

    async def delete(self, block_id: int) -> None:
        await self.session.execute(delete(SeatBlock).where(SeatBlock.id == block_id))

    async def list_for_venue(self, venue_id: int) -> list[entities.SeatBlock]:
        rows = await self.session.scalars(
            select(SeatBlock).where(SeatBlock.venue_id == venue_id).order_by(SeatBlock.start_at, SeatBlock.id)
        )
        return [_to_block(row) for row in rows]
