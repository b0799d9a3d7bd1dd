from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..models import ReservationStatus
from .entities import BareReservation, ReservationDraft, ReservationWithContext, SeatBlock, Venue


class VenueRepository(Protocol):
    async def lock_venue(self, venue_id: int) -> None: ...

    async def find_by_id(self, venue_id: int) -> Venue | None: ...


class ReservationRepository(Protocol):
    async def lock_reservation(self, reservation_id: int) -> int | None: ...

    async def find_overlapping(
        self,
        venue_id: int,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> list[BareReservation]: ...

    async def find_for_venue_window(self, venue_id: int, start: datetime, end: datetime) -> list[BareReservation]: ...

    async def get_with_context(self, reservation_id: int) -> ReservationWithContext | None: ...

    async def create(self, draft: ReservationDraft) -> BareReservation: ...

    async def update_status(self, reservation_id: int, status: ReservationStatus) -> BareReservation: ...

    async def update_window(
        self,
        reservation_id: int,
        *,
        start_at: datetime,
        end_at: datetime,
        seat_id: int | None,
        table_id: int | None,
    ) -> BareReservation: ...

    async def list_by_user(self, user_id: int) -> list[ReservationWithContext]: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> ReservationWithContext | None: ...


class SeatBlockRepository(Protocol):
    async def find_overlapping(self, venue_id: int, start: datetime, end: datetime) -> list[SeatBlock]: ...

    async def create(
        self,
        *,
        venue_id: int,
        seat_id: int | None,
        start_at: datetime,
        end_at: datetime,
        reason: str | None,
        created_by_user_id: int | None,
    ) -> SeatBlock: ...

    async def get(self, venue_id: int, block_id: int) -> SeatBlock | None: ...

    async def delete(self, block_id: int) -> None: ...

    async def list_for_venue(self, venue_id: int) -> list[SeatBlock]: ...


class NotificationQueue(Protocol):
    async def enqueue(
        self,
        *,
        type: str,
        dedupe_key: str,
        to_email: str,
        payload: dict[str, Any],
        user_id: int | None = None,
        venue_id: int | None = None,
        booking_id: int | None = None,
    ) -> tuple[bool, int]: ...
