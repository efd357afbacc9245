"""
Command Resolver - Turn chat commands into price store requests.

The transport hands over who sent the message, when, and the raw argument
tokens. Everything here validates its input before touching the store, so an
InvalidInput never leaves a partial write behind.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Union

from turnip_tracker.services.calendar import (
    DEFAULT_MORNING_CUTOFF_HOUR,
    HalfDay,
    Weekday,
    infer_half_day,
    infer_weekday,
    is_half_day_marker,
    is_weekday_name,
    parse_half_day,
    parse_weekday,
    resolve_slot,
)
from turnip_tracker.services.chart import encode_chart
from turnip_tracker.services.price_store import PriceStore
from turnip_tracker.shared.errors import InvalidInput

logger = logging.getLogger(__name__)

_PRICE_RE = re.compile(r"-?\d+")
_PRICE_TOKEN_RE = re.compile(r"^\d+$")


@dataclass
class ObservationArgs:
    """Parsed arguments of a buy-price command."""

    price: int
    day: Optional[Weekday] = None
    half_day: Optional[HalfDay] = None


def parse_price(text: Optional[str]) -> int:
    """Take the first run of digits in `text` as a non-negative price."""
    match = _PRICE_RE.search(text or "")
    if match is None:
        raise InvalidInput("no price found, send a whole number like 100")
    if match.group().startswith("-"):
        raise InvalidInput("price must not be negative")
    return int(match.group())


def parse_observation_args(args: Sequence[str]) -> ObservationArgs:
    """
    Parse `<price> [day] [am|pm]` with the tokens in any order.

    Raises:
        InvalidInput: missing or repeated price, repeated day or half-day,
            or a token that is none of these.
    """
    price: Optional[int] = None
    day: Optional[Weekday] = None
    half_day: Optional[HalfDay] = None

    for token in args:
        token = token.strip()
        if not token:
            continue
        if _PRICE_TOKEN_RE.match(token):
            if price is not None:
                raise InvalidInput("send only one price per message")
            price = int(token)
        elif is_weekday_name(token):
            if day is not None:
                raise InvalidInput("send only one day per message")
            day = parse_weekday(token)
        elif is_half_day_marker(token):
            if half_day is not None:
                raise InvalidInput("send only one of am / pm per message")
            half_day = parse_half_day(token)
        else:
            raise InvalidInput(f"didn't understand {token!r}")

    if price is None:
        raise InvalidInput("no price found, send a whole number like 90")
    return ObservationArgs(price=price, day=day, half_day=half_day)


def resolve_observation_slot(
    event_time: datetime,
    day: Optional[Union[Weekday, str]] = None,
    half_day: Optional[Union[HalfDay, str]] = None,
    cutoff_hour: int = DEFAULT_MORNING_CUTOFF_HOUR,
) -> tuple[Weekday, HalfDay]:
    """
    Fill in a missing day from the event's weekday and a missing half-day
    from the event's hour.

    Raises:
        InvalidSlot: the resulting day is Sunday.
    """
    if day is None:
        day = infer_weekday(event_time)
    if half_day is None:
        half_day = infer_half_day(event_time, cutoff_hour)
    return resolve_slot(day, half_day)


def record_base_price(
    store: PriceStore,
    external_id: str,
    display_name: str,
    event_time: datetime,
    price: int,
) -> int:
    """Record the Sunday selling price for the user's current week. Returns the week id."""
    if price < 0:
        raise InvalidInput("price must not be negative")
    user_id = store.get_or_create_user(external_id, display_name)
    week_id = store.upsert_week(user_id, event_time, price)
    logger.info(f"Base price {price} from {display_name} ({external_id}) -> week {week_id}")
    return week_id


def record_observation(
    store: PriceStore,
    external_id: str,
    display_name: str,
    event_time: datetime,
    price: int,
    day: Optional[Union[Weekday, str]] = None,
    half_day: Optional[Union[HalfDay, str]] = None,
    cutoff_hour: int = DEFAULT_MORNING_CUTOFF_HOUR,
) -> int:
    """
    Record a half-day buy price against the user's current week.

    Returns:
        The observation id (stable across resubmissions of the same slot).

    Raises:
        InvalidInput / InvalidSlot: bad price, day or half-day.
        NotFound: no base price recorded yet for the week of `event_time`.
    """
    if price < 0:
        raise InvalidInput("price must not be negative")
    slot_day, slot_half = resolve_observation_slot(event_time, day, half_day, cutoff_hour)

    user_id = store.get_or_create_user(external_id, display_name)
    week = store.get_week(user_id, event_time)
    observation_id = store.upsert_observation(week.id, slot_day, slot_half, price)
    logger.info(
        f"Buy price {price} from {display_name} ({external_id}) "
        f"-> {slot_day.label} {slot_half.label}, observation {observation_id}"
    )
    return observation_id


def render_chart(
    store: PriceStore,
    external_id: str,
    event_time: datetime,
    base_url: Optional[str] = None,
) -> str:
    """
    Chart URL for the user's current week.

    Raises:
        NotFound: unknown user, or no base price for the week of `event_time`.
    """
    user = store.get_user(external_id)
    week = store.get_week(user.id, event_time)
    observations = store.list_observations(week.id)
    return encode_chart(week.base_price, observations, base_url=base_url)
