"""
Chart Encoder - Render a week's prices as a link to an external forecaster.

The week is flattened into 13 positions (base price first, then Monday
morning through Saturday afternoon) and joined with dashes after the
service's base address. Slots without a reading are sent as 0.
"""

from typing import Iterable, Optional

from turnip_tracker.services.calendar import BASE_SLOT, SLOT_COUNT, slot_index

CHART_BASE_URL = "https://turnipprophet.io/?prices="
CHART_SEPARATOR = "-"
MISSING_PRICE = 0


def chart_slots(base_price: int, observations: Iterable) -> list[int]:
    """
    Build the ordered 13-slot price list for a week.

    `observations` are any objects with `day_of_week`, `half_day` and
    `price` attributes. Their order does not matter; each lands on its slot.
    """
    slots = [MISSING_PRICE] * SLOT_COUNT
    slots[BASE_SLOT] = int(base_price)
    for obs in observations:
        slots[slot_index(obs.day_of_week, obs.half_day)] = int(obs.price)
    return slots


def encode_chart(
    base_price: int,
    observations: Iterable,
    base_url: Optional[str] = None,
) -> str:
    """Encode a week as a chart URL, e.g. `<base>100-90-0-...-110`."""
    slots = chart_slots(base_price, observations)
    prefix = CHART_BASE_URL if base_url is None else base_url
    return prefix + CHART_SEPARATOR.join(str(price) for price in slots)
