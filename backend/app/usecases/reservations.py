from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..domain.conflicts import ensure_no_conflict
from ..domain.entities import Actor, BareReservation, ReservationWithContext, Venue
from ..domain.errors import NotFoundError, ValidationError
from ..domain.guard import ensure_venue_approved, ensure_venue_bookable
from ..domain.repositories import NotificationQueue, ReservationRepository, SeatBlockRepository, VenueRepository
from ..domain.services import (
    CONFIRMATION_NOTIFICATION,
    BookingRequest,
    ResolvedTarget,
    build_drafts,
    confirmation_dedupe_key,
    ensure_can_cancel,
    ensure_can_edit,
    ensure_within_hours,
    resolve_edit_target,
    resolve_target,
    validate_window,
)
from ..models import ReservationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatedBooking:
    venue: Venue
    reservations: list[BareReservation]


async def _check_conflicts(
    res_repo: ReservationRepository,
    block_repo: SeatBlockRepository,
    *,
    venue_id: int,
    resolved: ResolvedTarget,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    reservations = await res_repo.find_overlapping(venue_id, start_at, end_at, exclude_id=exclude_id)
    blocks = await block_repo.find_overlapping(venue_id, start_at, end_at)
    ensure_no_conflict(resolved.target, start_at, end_at, reservations, blocks, exclude_id=exclude_id)


async def create_reservation(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    block_repo: SeatBlockRepository,
    notifications: NotificationQueue,
    *,
    request: BookingRequest,
    actor: Actor,
    now: datetime,
) -> CreatedBooking:
    validate_window(request.start_at, request.end_at, now)

    # serializes writers on this venue; taken before any other read
    await venue_repo.lock_venue(request.venue_id)
    venue = await venue_repo.find_by_id(request.venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.")
    ensure_venue_bookable(venue)
    ensure_venue_approved(venue)
    ensure_within_hours(venue, request.start_at, request.end_at)

    resolved = resolve_target(venue, request)
    await _check_conflicts(
        res_repo,
        block_repo,
        venue_id=venue.id,
        resolved=resolved,
        start_at=request.start_at,
        end_at=request.end_at,
    )

    created: list[BareReservation] = []
    for draft in build_drafts(
        resolved,
        venue_id=venue.id,
        user_id=actor.id,
        start_at=request.start_at,
        end_at=request.end_at,
    ):
        created.append(await res_repo.create(draft))

    await _enqueue_confirmations(notifications, venue=venue, actor=actor, reservations=created)
    return CreatedBooking(venue=venue, reservations=created)


def _confirmation_payload(venue: Venue, reservations: list[BareReservation]) -> dict[str, Any]:
    first = reservations[0]
    return {
        "venue_id": venue.id,
        "venue_name": venue.name,
        "reservation_ids": [res.id for res in reservations],
        "start_at": first.start_at.isoformat(),
        "end_at": first.end_at.isoformat(),
        "seat_count": sum(res.seat_count for res in reservations),
        "table_id": first.table_id,
        "seat_ids": [res.seat_id for res in reservations if res.seat_id is not None],
    }


async def _enqueue_confirmations(
    notifications: NotificationQueue,
    *,
    venue: Venue,
    actor: Actor,
    reservations: list[BareReservation],
) -> None:
    if not reservations:
        return
    booking_id = reservations[0].id
    payload = _confirmation_payload(venue, reservations)
    recipients: list[tuple[str, str, Optional[int]]] = []
    if actor.email:
        recipients.append(("user", actor.email, actor.id))
    owner_email = venue.owner.email if venue.owner is not None else None
    if owner_email:
        recipients.append(("owner", owner_email, venue.owner_id))

    for recipient, email, user_id in recipients:
        dedupe_key = confirmation_dedupe_key(booking_id, recipient)
        try:
            created, event_id = await notifications.enqueue(
                type=CONFIRMATION_NOTIFICATION,
                dedupe_key=dedupe_key,
                to_email=email,
                payload={**payload, "recipient": recipient},
                user_id=user_id,
                venue_id=venue.id,
                booking_id=booking_id,
            )
        except Exception:
            # delivery is best effort; the booking itself already succeeded
            logger.exception("failed to enqueue %s", dedupe_key)
            continue
        if created:
            logger.info("queued %s as notification %s", dedupe_key, event_id)


async def _load_context(res_repo: ReservationRepository, reservation_id: int) -> ReservationWithContext:
    context = await res_repo.get_with_context(reservation_id)
    if context is None:
        raise NotFoundError("Reservation not found.")
    return context


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    actor: Actor,
) -> tuple[BareReservation, ReservationStatus]:
    """Cancel a reservation; returns the updated row and its previous status."""
    context = await _load_context(res_repo, reservation_id)
    ensure_can_cancel(actor, context)
    reservation = context.reservation
    # Idempotent: already cancelled returns as-is
    if reservation.status == ReservationStatus.CANCELLED:
        return reservation, reservation.status
    updated = await res_repo.update_status(reservation.id, ReservationStatus.CANCELLED)
    return updated, reservation.status


async def edit_reservation(
    venue_repo: VenueRepository,
    res_repo: ReservationRepository,
    block_repo: SeatBlockRepository,
    *,
    reservation_id: int,
    actor: Actor,
    now: datetime,
    start_at: Optional[datetime] = None,
    end_at: Optional[datetime] = None,
    seat_id: Optional[int] = None,
) -> tuple[BareReservation, BareReservation]:
    """Move a reservation to a new window and/or seat; returns (before, after)."""
    venue_id = await res_repo.lock_reservation(reservation_id)
    if venue_id is None:
        raise NotFoundError("Reservation not found.")
    await venue_repo.lock_venue(venue_id)
    context = await _load_context(res_repo, reservation_id)
    ensure_can_edit(actor, context)
    before = context.reservation
    if before.status == ReservationStatus.CANCELLED:
        raise ValidationError("Cancelled reservations cannot be changed.")

    new_start = start_at or before.start_at
    new_end = end_at or before.end_at
    validate_window(new_start, new_end, now)

    venue = await venue_repo.find_by_id(venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.")
    ensure_within_hours(venue, new_start, new_end)
    resolved = resolve_edit_target(venue, before, seat_id)

    await _check_conflicts(
        res_repo,
        block_repo,
        venue_id=venue.id,
        resolved=resolved,
        start_at=new_start,
        end_at=new_end,
        exclude_id=before.id,
    )

    if resolved.table is not None:
        new_seat_id, new_table_id = None, resolved.table.id
    else:
        seat = resolved.seats[0]
        new_seat_id, new_table_id = seat.id, seat.table_id
    after = await res_repo.update_window(
        before.id,
        start_at=new_start,
        end_at=new_end,
        seat_id=new_seat_id,
        table_id=new_table_id,
    )
    return before, after


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
) -> list[ReservationWithContext]:
    return await res_repo.list_by_user(user_id)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> ReservationWithContext | None:
    return await res_repo.get_for_user(reservation_id, user_id)
