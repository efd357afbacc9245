"""
Telegram Bot Integration for the Turnip Tracker.

Parses /sell, /buy and /chart commands, hands them to the command resolver
and renders the result or the error as a reply.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
)

from turnip_tracker.config import Config, get_config
from turnip_tracker.services.commands import (
    parse_observation_args,
    parse_price,
    record_base_price,
    record_observation,
    render_chart,
    resolve_observation_slot,
)
from turnip_tracker.services.price_store import PriceStore, open_store
from turnip_tracker.shared import identity
from turnip_tracker.shared.errors import InvalidInput, NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

STORE_KEY = "store"
CONFIG_KEY = "config"


def _store(context: ContextTypes.DEFAULT_TYPE) -> PriceStore:
    return context.application.bot_data[STORE_KEY]


def _config(context: ContextTypes.DEFAULT_TYPE) -> Config:
    return context.application.bot_data.get(CONFIG_KEY) or get_config()


def event_time(update: Update, tz_name: str) -> datetime:
    """Message time in the market's timezone (Telegram sends UTC)."""
    sent = update.message.date if update.message else None
    if sent is None:
        sent = datetime.now(timezone.utc)
    elif sent.tzinfo is None:
        sent = sent.replace(tzinfo=timezone.utc)
    return sent.astimezone(ZoneInfo(tz_name))


def _sender(update: Update) -> tuple[str, str]:
    user = update.effective_user
    return str(user.id), user.full_name or user.username or str(user.id)


async def _reply(update: Update, text: str, parse_mode: Optional[str] = None):
    await update.message.reply_text(text, parse_mode=parse_mode)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start and /help."""
    await _reply(update, identity.HELP_TEXT)


async def sell_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle `/sell <price>`: record the week's base price."""
    config = _config(context)
    external_id, display_name = _sender(update)
    when = event_time(update, config.timezone)

    try:
        price = parse_price(" ".join(context.args or []))
        record_base_price(_store(context), external_id, display_name, when, price)
    except InvalidInput as e:
        await _reply(update, identity.invalid_input(str(e)))
        return
    except StoreUnavailable:
        logger.error(f"Store unavailable recording base price for {external_id}", exc_info=True)
        await _reply(update, identity.store_failure())
        return

    await _reply(update, identity.base_price_recorded(price))


async def buy_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle `/buy <price> [day] [am|pm]`: record a half-day reading."""
    config = _config(context)
    external_id, display_name = _sender(update)
    when = event_time(update, config.timezone)

    try:
        args = parse_observation_args(context.args or [])
        day, half_day = resolve_observation_slot(
            when, args.day, args.half_day, config.morning_cutoff_hour
        )
        record_observation(
            _store(context),
            external_id,
            display_name,
            when,
            args.price,
            day=day,
            half_day=half_day,
        )
    except InvalidInput as e:
        await _reply(update, identity.invalid_input(str(e)))
        return
    except NotFound:
        await _reply(update, identity.missing_base_price())
        return
    except StoreUnavailable:
        logger.error(f"Store unavailable recording buy price for {external_id}", exc_info=True)
        await _reply(update, identity.store_failure())
        return

    await _reply(update, identity.observation_recorded(args.price, day, half_day))


async def chart_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /chart: link to the current week's forecast."""
    config = _config(context)
    external_id, _ = _sender(update)
    when = event_time(update, config.timezone)

    try:
        url = render_chart(_store(context), external_id, when, base_url=config.chart_base_url)
    except NotFound:
        await _reply(update, identity.missing_base_price())
        return
    except StoreUnavailable:
        logger.error(f"Store unavailable rendering chart for {external_id}", exc_info=True)
        await _reply(update, identity.store_failure())
        return

    await _reply(update, f"{identity.EMOJIS['chart']} {url}")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    """Handle errors."""
    logger.error(f"Update {update} caused error {context.error}", exc_info=context.error)


def create_application(store: PriceStore, config: Optional[Config] = None) -> Application:
    """Create and configure the Telegram application."""
    config = config or get_config()

    if not config.telegram_bot_token:
        raise ValueError("TELEGRAM_TURNIP_BOT_TOKEN not configured")
    invalid = [key for key in config.validate() if key.startswith("TURNIP_")]
    if invalid:
        raise ValueError(f"Invalid config: {', '.join(invalid)}")

    application = Application.builder().token(config.telegram_bot_token).build()
    application.bot_data[STORE_KEY] = store
    application.bot_data[CONFIG_KEY] = config

    # Command handlers
    application.add_handler(CommandHandler("start", help_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("sell", sell_command))
    application.add_handler(CommandHandler("buy", buy_command))
    application.add_handler(CommandHandler("chart", chart_command))

    # Error handler
    application.add_error_handler(error_handler)

    return application


def run_polling(config: Optional[Config] = None):
    """Run the bot using polling until interrupted."""
    config = config or get_config()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.log_level.upper(), logging.INFO),
    )
    logger.info("Starting Turnip Tracker Telegram bot (polling mode)...")

    with open_store(config) as store:
        application = create_application(store, config)
        application.run_polling(allowed_updates=Update.ALL_TYPES)
