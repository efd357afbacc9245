"""
IDENTITY - Bot identity and reply formatting.
"""

from turnip_tracker.services.calendar import HalfDay, Weekday

BOT_NAME = "Turnip Tracker"
BOT_EMOJI = "🥬"

# Emoji standards for consistent messaging
EMOJIS = {
    "success": "✅",
    "warning": "⚠️",
    "error": "❌",
    "bells": "💰",
    "chart": "📈",
    "robot": "🤖",
    "calendar": "📅",
}

HELP_TEXT = f"""{BOT_EMOJI} {BOT_NAME}

Commands:
/sell <price> - record this week's Sunday price
/buy <price> [day] [am|pm] - record a buy price
/chart - link to this week's price chart
/help - show this help

Examples:
/sell 98 on Sunday
/buy 120 (day and half-day taken from when you send it)
/buy 85 tuesday pm"""


def format_bells(price: int) -> str:
    """Format a price in bells, with thousands separators."""
    return f"{price:,} bells"


def format_slot(day: Weekday, half_day: HalfDay) -> str:
    """e.g. 'Tuesday afternoon'."""
    return f"{day.label} {half_day.label}"


def base_price_recorded(price: int) -> str:
    return f"{EMOJIS['success']} Sunday price recorded: {format_bells(price)}"


def observation_recorded(price: int, day: Weekday, half_day: HalfDay) -> str:
    return f"{EMOJIS['success']} {format_slot(day, half_day)}: {format_bells(price)}"


def missing_base_price() -> str:
    return (
        f"{EMOJIS['calendar']} No Sunday price for this week yet. "
        f"Send /sell <price> first."
    )


def invalid_input(reason: str) -> str:
    return f"{EMOJIS['warning']} {reason}"


def store_failure() -> str:
    return f"{EMOJIS['error']} Sorry, something went wrong saving that. Please try again."
