from datetime import datetime, timezone
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .domain.availability import GroupTableOption, SeatAvailability, SeatGroup, SeatOption, SlotAvailability
from .domain.entities import BareReservation, ReservationWithContext, SeatBlock
from .domain.guard import Bookability
from .models import ReservationStatus
from .usecases.availability import DayAvailability, VenueStatusView, WindowAvailability
from .utils.time import as_utc

# naive datetimes in request bodies are read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def _iso_utc(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat()


class RequestModel(BaseModel):
    """Request bodies accept snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreate(RequestModel):
    venue_id: Optional[int] = None
    seat_id: Optional[int] = None
    seat_ids: Optional[list[int]] = None
    table_id: Optional[int] = None
    seat_count: Optional[int] = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None


class ReservationPatch(RequestModel):
    status: Optional[Literal["cancelled"]] = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    seat_id: Optional[int] = None

    @property
    def is_cancel(self) -> bool:
        return self.status == "cancelled"

    @property
    def is_edit(self) -> bool:
        return self.start_at is not None or self.end_at is not None or self.seat_id is not None


class SeatBlockCreate(RequestModel):
    seat_id: Optional[int] = None
    start_at: UtcDatetime
    end_at: Optional[UtcDatetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    reason: Optional[str] = Field(default=None, max_length=500)


class ReservationRead(BaseModel):
    reservation_id: int
    venue_id: int
    user_id: int
    seat_id: Optional[int]
    table_id: Optional[int]
    seat_count: int
    status: ReservationStatus
    start_at: datetime
    end_at: datetime
    venue_name: Optional[str] = None
    table_name: Optional[str] = None
    seat_label: Optional[str] = None

    @field_serializer("start_at", "end_at")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_entity(cls, reservation: BareReservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            venue_id=reservation.venue_id,
            user_id=reservation.user_id,
            seat_id=reservation.seat_id,
            table_id=reservation.table_id,
            seat_count=reservation.seat_count,
            status=reservation.status,
            start_at=reservation.start_at,
            end_at=reservation.end_at,
        )

    @classmethod
    def from_context(cls, context: ReservationWithContext) -> "ReservationRead":
        return cls.from_entity(context.reservation).model_copy(
            update={
                "venue_name": context.venue_name,
                "table_name": context.table_name,
                "seat_label": context.seat_label,
            }
        )


class BookingCreated(BaseModel):
    venue_id: int
    seat_count: int
    reservations: list[ReservationRead]


class SeatRead(BaseModel):
    seat_id: int
    table_id: int
    table_name: Optional[str]
    label: Optional[str]
    position: Optional[int]
    price_per_hour: float
    next_available_at: Optional[datetime] = None

    @field_serializer("next_available_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_option(cls, option: SeatOption) -> "SeatRead":
        return cls(
            seat_id=option.seat.id,
            table_id=option.seat.table_id,
            table_name=option.table_name,
            label=option.seat.label,
            position=option.seat.position,
            price_per_hour=option.seat.price_per_hour,
            next_available_at=option.next_available_at,
        )


class GroupTableRead(BaseModel):
    table_id: int
    name: Optional[str]
    seat_count: int
    table_price_per_hour: Optional[float]
    next_available_at: Optional[datetime] = None

    @field_serializer("next_available_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_option(cls, option: GroupTableOption) -> "GroupTableRead":
        return cls(
            table_id=option.table.id,
            name=option.table.name,
            seat_count=option.seat_count,
            table_price_per_hour=option.table.table_price_per_hour,
            next_available_at=option.next_available_at,
        )


class SeatGroupRead(BaseModel):
    table_id: int
    seat_ids: list[int]
    total_price_per_hour: float

    @classmethod
    def from_group(cls, group: SeatGroup) -> "SeatGroupRead":
        return cls(
            table_id=group.table_id,
            seat_ids=[option.seat.id for option in group.seats],
            total_price_per_hour=group.total_price_per_hour,
        )


class AvailabilityRead(BaseModel):
    venue_id: int
    start_at: datetime
    end_at: datetime
    seat_count: int
    capacity: int
    available_seats: list[SeatRead] = Field(default_factory=list)
    unavailable_seats: list[SeatRead] = Field(default_factory=list)
    unavailable_seat_ids: list[int] = Field(default_factory=list)
    available_group_tables: list[GroupTableRead] = Field(default_factory=list)
    unavailable_group_tables: list[GroupTableRead] = Field(default_factory=list)
    available_seat_groups: list[SeatGroupRead] = Field(default_factory=list)
    booking_disabled: bool = False
    pause_message: Optional[str] = None
    error: Optional[str] = None

    @field_serializer("start_at", "end_at")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_result(cls, result: WindowAvailability) -> "AvailabilityRead":
        seats: SeatAvailability = result.seats
        return cls(
            venue_id=result.venue_id,
            start_at=result.start_at,
            end_at=result.end_at,
            seat_count=result.seat_count,
            capacity=seats.capacity,
            available_seats=[SeatRead.from_option(opt) for opt in seats.available_seats],
            unavailable_seats=[SeatRead.from_option(opt) for opt in seats.unavailable_seats],
            unavailable_seat_ids=sorted(seats.unavailable_seat_ids),
            available_group_tables=[GroupTableRead.from_option(opt) for opt in seats.available_group_tables],
            unavailable_group_tables=[GroupTableRead.from_option(opt) for opt in seats.unavailable_group_tables],
            available_seat_groups=[SeatGroupRead.from_group(group) for group in seats.available_seat_groups],
            booking_disabled=result.booking_disabled,
            pause_message=result.pause_message,
            error=seats.error,
        )


class SlotRead(BaseModel):
    start: datetime
    end: datetime
    available_seats: int
    is_fully_booked: bool

    @field_serializer("start", "end")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_slot(cls, slot: SlotAvailability) -> "SlotRead":
        return cls(
            start=slot.start,
            end=slot.end,
            available_seats=slot.available_seats,
            is_fully_booked=slot.is_fully_booked,
        )


class DayAvailabilityRead(BaseModel):
    venue_id: int
    date: str
    capacity: int
    slots: list[SlotRead]

    @classmethod
    def from_result(cls, result: DayAvailability) -> "DayAvailabilityRead":
        return cls(
            venue_id=result.venue_id,
            date=result.date,
            capacity=result.capacity,
            slots=[SlotRead.from_slot(slot) for slot in result.slots],
        )


class BookabilityRead(BaseModel):
    can_book: bool
    status: str
    reason: Optional[str] = None
    pause_message: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_bookability(cls, bookability: Bookability) -> "BookabilityRead":
        return cls(
            can_book=bookability.can_book,
            status=str(bookability.status),
            reason=bookability.reason,
            pause_message=bookability.pause_message,
            code=bookability.code,
        )


class VenueStatusRead(BaseModel):
    venue_id: int
    is_open: bool
    status: str
    today_label: str
    today_hours_text: str
    next_open_at: Optional[datetime] = None
    availability_label: str
    weekly_hours: list[str]
    bookability: BookabilityRead

    @field_serializer("next_open_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_view(cls, view: VenueStatusView) -> "VenueStatusRead":
        return cls(
            venue_id=view.venue_id,
            is_open=view.open_status.is_open,
            status=str(view.open_status.status),
            today_label=view.open_status.today_label,
            today_hours_text=view.open_status.today_hours_text,
            next_open_at=view.open_status.next_open_at,
            availability_label=view.label,
            weekly_hours=view.weekly_hours,
            bookability=BookabilityRead.from_bookability(view.bookability),
        )


class SeatBlockRead(BaseModel):
    seat_block_id: int
    venue_id: int
    seat_id: Optional[int]
    start_at: datetime
    end_at: datetime
    reason: Optional[str] = None

    @field_serializer("start_at", "end_at")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _iso_utc(dt)

    @classmethod
    def from_entity(cls, block: SeatBlock) -> "SeatBlockRead":
        return cls(
            seat_block_id=block.id,
            venue_id=block.venue_id,
            seat_id=block.seat_id,
            start_at=block.start_at,
            end_at=block.end_at,
            reason=block.reason,
        )
