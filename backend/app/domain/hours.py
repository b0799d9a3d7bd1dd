"""Venue opening hours: open status at an instant and slot boundaries for a day.

All "today" logic runs in the venue's IANA timezone. Weekly rows use
0=Sunday..6=Saturday. A row never spans midnight; venues open past midnight
carry a second row on the following day starting at 00:00. A close time of
"23:59" means "until midnight", so "00:00"-"23:59" is open all day.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import StrEnum
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..utils.time import as_utc
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
MINUTES_PER_DAY = 24 * 60
END_OF_DAY_SENTINEL = "23:59"
MAX_RESERVATION_LENGTH = timedelta(hours=24)

WEEKDAY_SHORT = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
WEEKDAY_LONG = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")
_DATE_STRING = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class WeeklyHoursRow:
    day_of_week: int
    is_closed: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None


@dataclass(frozen=True)
class CanonicalVenueHours:
    timezone: str
    weekly_hours: tuple[WeeklyHoursRow, ...] = ()

    def row_for(self, day_of_week: int) -> Optional[WeeklyHoursRow]:
        for row in self.weekly_hours:
            if row.day_of_week == day_of_week:
                return row
        return None


class OpenStatusKind(StrEnum):
    OPEN_NOW = "OPEN_NOW"
    CLOSED_NOW = "CLOSED_NOW"
    OPENS_LATER = "OPENS_LATER"
    CLOSED_TODAY = "CLOSED_TODAY"


@dataclass(frozen=True)
class OpenStatus:
    is_open: bool
    status: OpenStatusKind
    today_label: str
    today_hours_text: str
    next_open_at: Optional[datetime] = None
    diagnostic_message: Optional[str] = None


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime


def resolve_timezone(name: Optional[str], fallback: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Return the ZoneInfo for `name`, falling back to `fallback`."""
    try:
        return ZoneInfo(name or fallback)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("invalid timezone %r, falling back to %s", name, fallback)
        return ZoneInfo(fallback)


def parse_hhmm(value: Optional[str]) -> Optional[int]:
    """Parse "HH:MM" into minutes since midnight, or None if invalid."""
    if not value or not isinstance(value, str):
        return None
    match = _HHMM.match(value.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    """Render minutes since midnight as "9:00 AM"; 1440 renders as "12:00 AM"."""
    total_hours = minutes // 60
    hour = total_hours % 24
    minute = minutes % 60
    period = "PM" if 12 <= total_hours < 24 else "AM"
    display_hour = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{display_hour}:{minute:02d} {period}"


def format_time_label(instant: datetime, time_zone: Optional[str]) -> str:
    local = as_utc(instant).astimezone(resolve_timezone(time_zone))
    return format_minutes(local.hour * 60 + local.minute)


def local_date_string(instant: datetime, time_zone: Optional[str]) -> str:
    return as_utc(instant).astimezone(resolve_timezone(time_zone)).date().isoformat()


def parse_date_string(value: str) -> date:
    if not isinstance(value, str) or not _DATE_STRING.match(value):
        raise ValidationError("Invalid date. Use YYYY-MM-DD.")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Invalid date. Use YYYY-MM-DD.") from exc


def _day_of_week(day: date) -> int:
    return (day.weekday() + 1) % 7


def _open_window(row: Optional[WeeklyHoursRow]) -> Optional[tuple[int, int]]:
    if row is None or row.is_closed:
        return None
    open_min = parse_hhmm(row.open_time)
    close_raw = parse_hhmm(row.close_time)
    if open_min is None or close_raw is None:
        return None
    close_min = MINUTES_PER_DAY if row.close_time == END_OF_DAY_SENTINEL else close_raw
    if close_min <= open_min:
        return None
    return open_min, close_min


def _local_instant(tz: ZoneInfo, day: date, minutes: int) -> datetime:
    day = day + timedelta(days=minutes // MINUTES_PER_DAY)
    remainder = minutes % MINUTES_PER_DAY
    local = datetime.combine(day, time(remainder // 60, remainder % 60), tzinfo=tz)
    return local.astimezone(timezone.utc)


def _hours_text(open_min: int, close_min: int) -> str:
    return f"{format_minutes(open_min)} – {format_minutes(close_min)}"


def _find_next_open(
    hours: CanonicalVenueHours,
    tz: ZoneInfo,
    at: datetime,
    local_day: date,
) -> Optional[datetime]:
    for offset in range(1, 8):
        day = local_day + timedelta(days=offset)
        window = _open_window(hours.row_for(_day_of_week(day)))
        if window is None:
            continue
        candidate = _local_instant(tz, day, window[0])
        if candidate > at:
            return candidate
    return None


def get_open_status(hours: CanonicalVenueHours, at: datetime) -> OpenStatus:
    at = as_utc(at)
    tz = resolve_timezone(hours.timezone)
    local = at.astimezone(tz)
    local_day = local.date()
    today_label = WEEKDAY_SHORT[_day_of_week(local_day)]
    minute_of_day = local.hour * 60 + local.minute
    row = hours.row_for(_day_of_week(local_day))

    def closed(status: OpenStatusKind, diagnostic: Optional[str] = None) -> OpenStatus:
        return OpenStatus(
            is_open=False,
            status=status,
            today_label=today_label,
            today_hours_text="Closed",
            next_open_at=_find_next_open(hours, tz, at, local_day),
            diagnostic_message=diagnostic,
        )

    if row is None or row.is_closed:
        return closed(OpenStatusKind.CLOSED_TODAY)

    window = _open_window(row)
    if window is None:
        if parse_hhmm(row.open_time) is None or parse_hhmm(row.close_time) is None:
            diagnostic = f"Invalid or missing open/close for {today_label}"
        else:
            diagnostic = f"Invalid open/close for {today_label} (close before or equal to open)"
        return closed(OpenStatusKind.CLOSED_TODAY, diagnostic)

    open_min, close_min = window
    if open_min <= minute_of_day < close_min:
        return OpenStatus(
            is_open=True,
            status=OpenStatusKind.OPEN_NOW,
            today_label=today_label,
            today_hours_text=_hours_text(open_min, close_min),
        )
    if minute_of_day < open_min:
        return OpenStatus(
            is_open=False,
            status=OpenStatusKind.OPENS_LATER,
            today_label=today_label,
            today_hours_text=_hours_text(open_min, close_min),
            next_open_at=_local_instant(tz, local_day, open_min),
        )
    return closed(OpenStatusKind.CLOSED_NOW)


def _intervals_for_day(hours: CanonicalVenueHours, day: date) -> list[tuple[int, int]]:
    window = _open_window(hours.row_for(_day_of_week(day)))
    return [window] if window is not None else []


def get_open_intervals_for_date(hours: CanonicalVenueHours, date_string: str) -> list[tuple[int, int]]:
    """Open intervals, in minutes since local midnight, for a venue-local date."""
    return _intervals_for_day(hours, parse_date_string(date_string))


def get_slot_times_for_date(
    hours: CanonicalVenueHours,
    date_string: str,
    slot_minutes: int = 60,
) -> list[TimeSlot]:
    """Fixed-size slots covering the day's open window; the last slot is clipped to close.

    Slots step in UTC from the open instant to the close instant, so a DST
    change inside the window makes the day shorter or longer rather than
    producing empty or stretched slots.
    """
    if slot_minutes < 1:
        raise ValueError("slot_minutes must be >= 1")
    tz = resolve_timezone(hours.timezone)
    day = parse_date_string(date_string)
    step = timedelta(minutes=slot_minutes)
    slots: list[TimeSlot] = []
    for start_min, end_min in _intervals_for_day(hours, day):
        cursor = _local_instant(tz, day, start_min)
        close = _local_instant(tz, day, end_min)
        while cursor < close:
            slot_end = min(cursor + step, close)
            slots.append(TimeSlot(start=cursor, end=slot_end))
            cursor = slot_end
    return slots


def check_window_within_hours(
    start_at: datetime,
    end_at: datetime,
    hours: CanonicalVenueHours,
) -> Optional[str]:
    """Return an error message if [start_at, end_at) is not inside opening hours."""
    start_at, end_at = as_utc(start_at), as_utc(end_at)
    if end_at - start_at > MAX_RESERVATION_LENGTH:
        return "Reservations cannot exceed 24 hours."

    tz = resolve_timezone(hours.timezone)
    local_start = start_at.astimezone(tz)
    local_end = end_at.astimezone(tz)
    start_day, end_day = local_start.date(), local_end.date()
    start_min = local_start.hour * 60 + local_start.minute
    end_min = local_end.hour * 60 + local_end.minute

    # Ending exactly at midnight belongs to the start day.
    if end_day == start_day + timedelta(days=1) and end_min == 0 and local_end.second == 0:
        end_day, end_min = start_day, MINUTES_PER_DAY

    start_intervals = _intervals_for_day(hours, start_day)
    if start_day != end_day:
        end_intervals = _intervals_for_day(hours, end_day)
        first_fits = any(start_min >= lo and hi >= MINUTES_PER_DAY for lo, hi in start_intervals)
        second_fits = any(lo <= 0 and end_min <= hi for lo, hi in end_intervals)
        if not (first_fits and second_fits):
            return "This venue isn't open during the entire selected period."
        return None

    if not any(start_min >= lo and end_min <= hi for lo, hi in start_intervals):
        return "This venue isn't open at this time. Please check opening hours."
    return None


def format_weekly_hours(hours: CanonicalVenueHours) -> list[str]:
    lines: list[str] = []
    for day_of_week, label in enumerate(WEEKDAY_SHORT):
        window = _open_window(hours.row_for(day_of_week))
        if window is None:
            lines.append(f"{label}: Closed")
        else:
            lines.append(f"{label}: {_hours_text(*window)}")
    return lines


def sorted_rows(rows: Iterable[WeeklyHoursRow]) -> tuple[WeeklyHoursRow, ...]:
    return tuple(sorted(rows, key=lambda row: row.day_of_week))
