"""
Week and slot arithmetic for the turnip market.

A market week starts on Sunday, when the base (selling) price is recorded.
Monday to Saturday each have a morning and an afternoon reading, which gives
13 positions per week: the base price at index 0, then
Mon-AM, Mon-PM, Tue-AM, ... Sat-PM at 1..12.
"""

from datetime import date, datetime, timedelta
from enum import Enum, IntEnum
from typing import Union

from turnip_tracker.shared.errors import InvalidInput, InvalidSlot

BASE_SLOT = 0
SLOT_COUNT = 13

# Half-day inference: readings sent before this hour count as morning.
DEFAULT_MORNING_CUTOFF_HOUR = 11


class Weekday(IntEnum):
    """Day of week, Sunday-first (Sunday = 0)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()


class HalfDay(str, Enum):
    """Morning or afternoon, stored as 'am' / 'pm'."""

    MORNING = "am"
    AFTERNOON = "pm"

    @property
    def label(self) -> str:
        return "morning" if self is HalfDay.MORNING else "afternoon"


_WEEKDAY_NAMES = {
    "sunday": Weekday.SUNDAY,
    "sun": Weekday.SUNDAY,
    "monday": Weekday.MONDAY,
    "mon": Weekday.MONDAY,
    "tuesday": Weekday.TUESDAY,
    "tue": Weekday.TUESDAY,
    "tues": Weekday.TUESDAY,
    "wednesday": Weekday.WEDNESDAY,
    "wed": Weekday.WEDNESDAY,
    "thursday": Weekday.THURSDAY,
    "thu": Weekday.THURSDAY,
    "thurs": Weekday.THURSDAY,
    "friday": Weekday.FRIDAY,
    "fri": Weekday.FRIDAY,
    "saturday": Weekday.SATURDAY,
    "sat": Weekday.SATURDAY,
}

_HALF_DAY_MARKERS = {
    "am": HalfDay.MORNING,
    "morning": HalfDay.MORNING,
    "pm": HalfDay.AFTERNOON,
    "afternoon": HalfDay.AFTERNOON,
}


def normalize_week(timestamp: Union[datetime, date]) -> date:
    """
    Map a timestamp onto its week-start: the most recent Sunday at or
    before the timestamp's date. The result carries no time component.
    """
    if isinstance(timestamp, datetime):
        day = timestamp.date()
    else:
        day = timestamp
    # date.weekday() is Monday=0 .. Sunday=6; shift to Sunday=0.
    days_since_sunday = (day.weekday() + 1) % 7
    return day - timedelta(days=days_since_sunday)


def weekday_of(timestamp: Union[datetime, date]) -> Weekday:
    """Sunday-first weekday of a timestamp."""
    return Weekday((timestamp.weekday() + 1) % 7)


def resolve_slot(
    day_of_week: Union[Weekday, int, str], half_day: Union[HalfDay, str]
) -> tuple[Weekday, HalfDay]:
    """
    Coerce a (day, half-day) pair to enums, accepting names as well.

    Raises:
        InvalidSlot: for Sunday (its price is the week's base price) or for
            a value that is not a weekday / half-day.
    """
    try:
        if isinstance(day_of_week, str):
            day = parse_weekday(day_of_week)
        else:
            day = Weekday(day_of_week)
        if isinstance(half_day, str) and not isinstance(half_day, HalfDay):
            half = parse_half_day(half_day)
        else:
            half = HalfDay(half_day)
    except (ValueError, InvalidInput) as exc:
        raise InvalidSlot(f"no slot for {day_of_week!r} {half_day!r}") from exc

    if day is Weekday.SUNDAY:
        raise InvalidSlot("Sunday has no half-day readings, record it as the base price")
    return day, half


def slot_index(day_of_week: Union[Weekday, int, str], half_day: Union[HalfDay, str]) -> int:
    """Position of a (day, half-day) reading in the 13-slot week."""
    day, half = resolve_slot(day_of_week, half_day)
    index = 2 * (int(day) - 1) + 1
    if half is HalfDay.AFTERNOON:
        index += 1
    return index


def parse_weekday(name: str) -> Weekday:
    """Map a day name (full or abbreviated, any case) to a Weekday."""
    day = _WEEKDAY_NAMES.get(name.strip().lower().rstrip("."))
    if day is None:
        raise InvalidInput(f"unrecognized day name: {name!r}")
    return day


def parse_half_day(marker: str) -> HalfDay:
    """Map 'am'/'morning' or 'pm'/'afternoon' (any case) to a HalfDay."""
    half = _HALF_DAY_MARKERS.get(marker.strip().lower().replace(".", ""))
    if half is None:
        raise InvalidInput(f"half-day must be am or pm, got {marker!r}")
    return half


def is_weekday_name(token: str) -> bool:
    return token.strip().lower().rstrip(".") in _WEEKDAY_NAMES


def is_half_day_marker(token: str) -> bool:
    return token.strip().lower().replace(".", "") in _HALF_DAY_MARKERS


def infer_weekday(timestamp: datetime) -> Weekday:
    return weekday_of(timestamp)


def infer_half_day(timestamp: datetime, cutoff_hour: int = DEFAULT_MORNING_CUTOFF_HOUR) -> HalfDay:
    """Morning when the reading was sent before `cutoff_hour`, otherwise afternoon."""
    if timestamp.hour < cutoff_hour:
        return HalfDay.MORNING
    return HalfDay.AFTERNOON
