from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models import OnboardingStatus, UserStatus, VenueStatus
from .entities import Actor, Seat, Table, Venue
from .errors import BookingNotAllowedError, NotFoundError

DEFAULT_PAUSE_MESSAGE = "This venue is temporarily not accepting reservations."


@dataclass(frozen=True)
class Bookability:
    can_book: bool
    status: VenueStatus
    reason: Optional[str] = None
    pause_message: Optional[str] = None
    code: Optional[str] = None


def _is_deleted(venue: Venue) -> bool:
    return venue.status == VenueStatus.DELETED or venue.deleted_at is not None


def ensure_venue_bookable(venue: Optional[Venue]) -> None:
    """Raise BookingNotAllowedError unless the venue and its owner accept bookings."""
    if venue is None:
        raise BookingNotAllowedError("Venue not found.", "VENUE_NOT_FOUND")
    if _is_deleted(venue):
        raise BookingNotAllowedError("This venue is no longer available for booking.", "VENUE_DELETED")
    if venue.status == VenueStatus.PAUSED:
        message = venue.pause_message or DEFAULT_PAUSE_MESSAGE
        raise BookingNotAllowedError(message, "VENUE_PAUSED", message)
    if venue.owner is not None and venue.owner.status == UserStatus.DELETED:
        raise BookingNotAllowedError("This venue is not accepting reservations.", "OWNER_DELETED")


def ensure_venue_approved(venue: Venue) -> None:
    if venue.onboarding_status != OnboardingStatus.APPROVED:
        raise BookingNotAllowedError("This venue is not available for booking.", "VENUE_NOT_APPROVED")


def venue_bookability(venue: Optional[Venue]) -> Bookability:
    if venue is None:
        return Bookability(can_book=False, status=VenueStatus.DELETED, reason="Venue not found.", code="VENUE_NOT_FOUND")
    if _is_deleted(venue):
        return Bookability(
            can_book=False,
            status=VenueStatus.DELETED,
            reason="This venue is no longer available.",
            code="VENUE_DELETED",
        )
    if venue.status == VenueStatus.PAUSED:
        return Bookability(
            can_book=False,
            status=VenueStatus.PAUSED,
            reason=venue.pause_message or "Temporarily not accepting reservations.",
            pause_message=venue.pause_message,
            code="VENUE_PAUSED",
        )
    if venue.owner is not None and venue.owner.status == UserStatus.DELETED:
        return Bookability(
            can_book=False,
            status=VenueStatus.ACTIVE,
            reason="This venue is not accepting reservations.",
            code="OWNER_DELETED",
        )
    return Bookability(can_book=True, status=VenueStatus.ACTIVE)


def ensure_seat_bookable(venue: Venue, seat_id: int) -> Seat:
    seat = venue.find_seat(seat_id)
    if seat is None:
        raise NotFoundError("One or more seats not found.")
    table = venue.find_table(seat.table_id)
    if not seat.is_active or table is None or not table.is_active:
        raise BookingNotAllowedError("One or more seats are no longer available for booking.", "RESOURCE_DISABLED")
    return seat


def ensure_table_bookable(venue: Venue, table_id: int) -> Table:
    table = venue.find_table(table_id)
    if table is None:
        raise NotFoundError("Table not found.")
    if not table.is_active:
        raise BookingNotAllowedError("This table is no longer available for booking.", "RESOURCE_DISABLED")
    return table


def can_edit_venue(actor: Optional[Actor], venue_owner_id: Optional[int]) -> bool:
    """Admins may edit any venue; owners only their own. Ownerless venues are admin-only."""
    if actor is None:
        return False
    if actor.is_admin:
        return True
    return venue_owner_id is not None and venue_owner_id == actor.id
