from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ..domain.entities import Actor, SeatBlock, Venue
from ..domain.errors import AuthorizationError, NotFoundError, ValidationError
from ..domain.guard import can_edit_venue
from ..domain.repositories import SeatBlockRepository, VenueRepository


async def _load_managed_venue(venue_repo: VenueRepository, *, venue_id: int, actor: Actor) -> Venue:
    venue = await venue_repo.find_by_id(venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.")
    if not can_edit_venue(actor, venue.owner_id):
        raise AuthorizationError("You do not manage this venue.")
    return venue


def resolve_block_end(
    start_at: datetime,
    *,
    end_at: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
) -> datetime:
    if end_at is None and duration_minutes is None:
        raise ValidationError("Either endAt or durationMinutes is required.")
    if end_at is None:
        if duration_minutes is None or duration_minutes < 1:
            raise ValidationError("durationMinutes must be at least 1.")
        end_at = start_at + timedelta(minutes=duration_minutes)
    if end_at <= start_at:
        raise ValidationError("End time must be after start time.")
    return end_at


async def create_seat_block(
    venue_repo: VenueRepository,
    block_repo: SeatBlockRepository,
    *,
    venue_id: int,
    actor: Actor,
    start_at: datetime,
    seat_id: Optional[int] = None,
    end_at: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
    reason: Optional[str] = None,
) -> SeatBlock:
    await venue_repo.lock_venue(venue_id)
    venue = await _load_managed_venue(venue_repo, venue_id=venue_id, actor=actor)
    end = resolve_block_end(start_at, end_at=end_at, duration_minutes=duration_minutes)
    if seat_id is not None and venue.find_seat(seat_id) is None:
        raise NotFoundError("Seat not found.")
    return await block_repo.create(
        venue_id=venue.id,
        seat_id=seat_id,
        start_at=start_at,
        end_at=end,
        reason=reason,
        created_by_user_id=actor.id,
    )


async def list_seat_blocks(
    venue_repo: VenueRepository,
    block_repo: SeatBlockRepository,
    *,
    venue_id: int,
    actor: Actor,
) -> list[SeatBlock]:
    venue = await _load_managed_venue(venue_repo, venue_id=venue_id, actor=actor)
    return await block_repo.list_for_venue(venue.id)


async def delete_seat_block(
    venue_repo: VenueRepository,
    block_repo: SeatBlockRepository,
    *,
    venue_id: int,
    block_id: int,
    actor: Actor,
) -> SeatBlock:
    venue = await _load_managed_venue(venue_repo, venue_id=venue_id, actor=actor)
    block = await block_repo.get(venue.id, block_id)
    if block is None:
        raise NotFoundError("Seat block not found.")
    await block_repo.delete(block.id)
    return block
