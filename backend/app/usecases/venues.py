from ..domain.entities import Venue
from ..domain.errors import NotFoundError
from ..domain.guard import Bookability, ensure_venue_bookable, venue_bookability
from ..domain.repositories import VenueRepository


async def can_book_venue(venue_repo: VenueRepository, *, venue_id: int) -> None:
    """Raise BookingNotAllowedError when the venue cannot take bookings."""
    venue = await venue_repo.find_by_id(venue_id)
    ensure_venue_bookable(venue)


async def get_venue_bookability(venue_repo: VenueRepository, *, venue_id: int) -> Bookability:
    venue = await venue_repo.find_by_id(venue_id)
    return venue_bookability(venue)


async def load_visible_venue(venue_repo: VenueRepository, *, venue_id: int) -> Venue:
    """Venue for read-only views; deleted venues look missing."""
    venue = await venue_repo.find_by_id(venue_id)
    if venue is None or venue_bookability(venue).code == "VENUE_DELETED":
        raise NotFoundError("Venue not found.")
    return venue
