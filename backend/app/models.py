from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Enum, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String, Text


class Base(DeclarativeBase):
    pass


class UserStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"


class VenueStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    DELETED = "DELETED"


class OnboardingStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BookingMode(StrEnum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class ReservationStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class NotificationStatus(StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[UserStatus] = mapped_column(_str_enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Venue(Base):
    __tablename__ = "venues"
    __table_args__ = (Index("idx_venues_owner", "owner_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[VenueStatus] = mapped_column(_str_enum(VenueStatus), nullable=False, default=VenueStatus.ACTIVE)
    onboarding_status: Mapped[OnboardingStatus] = mapped_column(
        _str_enum(OnboardingStatus),
        nullable=False,
        default=OnboardingStatus.DRAFT,
    )
    pause_message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    owner: Mapped[Optional["User"]] = relationship()
    hours: Mapped[list["VenueHours"]] = relationship(back_populates="venue", order_by="VenueHours.day_of_week")
    tables: Mapped[list["VenueTable"]] = relationship(back_populates="venue", order_by="VenueTable.id")


class VenueHours(Base):
    __tablename__ = "venue_hours"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_venue_hours_day"),
        UniqueConstraint("venue_id", "day_of_week", name="uq_venue_hours_day"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    open_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    close_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    venue: Mapped["Venue"] = relationship(back_populates="hours")


class VenueTable(Base):
    __tablename__ = "venue_tables"
    __table_args__ = (
        CheckConstraint("seat_count >= 0", name="chk_tables_seat_count"),
        Index("idx_tables_venue", "venue_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    seat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    booking_mode: Mapped[BookingMode] = mapped_column(
        _str_enum(BookingMode),
        nullable=False,
        default=BookingMode.INDIVIDUAL,
    )
    table_price_per_hour: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    venue: Mapped["Venue"] = relationship(back_populates="tables")
    seats: Mapped[list["Seat"]] = relationship(back_populates="table", order_by="Seat.position")


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (Index("idx_seats_table", "table_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    table_id: Mapped[int] = mapped_column(ForeignKey("venue_tables.id"), nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_per_hour: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    table: Mapped["VenueTable"] = relationship(back_populates="seats")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="chk_res_time"),
        CheckConstraint("seat_count >= 1", name="chk_res_seat_count"),
        Index("idx_res_venue_start", "venue_id", "start_at"),
        Index("idx_res_seat", "seat_id"),
        Index("idx_res_table", "table_id"),
        Index("idx_res_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    seat_id: Mapped[Optional[int]] = mapped_column(ForeignKey("seats.id"), nullable=True)
    table_id: Mapped[Optional[int]] = mapped_column(ForeignKey("venue_tables.id"), nullable=True)
    seat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    venue: Mapped["Venue"] = relationship()
    user: Mapped["User"] = relationship()
    table: Mapped[Optional["VenueTable"]] = relationship()
    seat: Mapped[Optional["Seat"]] = relationship()


class SeatBlock(Base):
    __tablename__ = "seat_blocks"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="chk_blocks_time"),
        Index("idx_blocks_venue_start", "venue_id", "start_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    seat_id: Mapped[Optional[int]] = mapped_column(ForeignKey("seats.id"), nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_by_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class NotificationEvent(Base):
    __tablename__ = "notification_events"
    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_notification_dedupe"),
        Index("idx_notification_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    venue_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    booking_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        _str_enum(NotificationStatus),
        nullable=False,
        default=NotificationStatus.PENDING,
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
