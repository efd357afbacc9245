"""Tests for the Telegram command handlers and transport helpers (no network)."""

import asyncio
import logging
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from turnip_tracker.config import Config
from turnip_tracker.integrations.telegram_bot import (
    CONFIG_KEY,
    STORE_KEY,
    buy_command,
    chart_command,
    create_application,
    event_time,
    sell_command,
)
from turnip_tracker.services.calendar import HalfDay, Weekday
from turnip_tracker.shared import identity
from turnip_tracker.shared.supabase_client import Tables

TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"
SUNDAY = datetime(2020, 4, 5, 10, 0, tzinfo=timezone.utc)
TUESDAY_AFTERNOON = datetime(2020, 4, 7, 15, 0, tzinfo=timezone.utc)


def _update(sent):
    return SimpleNamespace(message=SimpleNamespace(date=sent))


class TestEventTime:
    def test_converts_to_market_timezone(self):
        # 14:00 UTC on Wednesday is 10:00 in New York (EDT).
        sent = datetime(2020, 4, 8, 14, 0, tzinfo=timezone.utc)
        local = event_time(_update(sent), "America/New_York")
        assert (local.day, local.hour) == (8, 10)

    def test_naive_dates_are_utc(self):
        local = event_time(_update(datetime(2020, 4, 8, 14, 0)), "UTC")
        assert local.hour == 14
        assert local.tzinfo is not None

    def test_crossing_midnight_changes_day(self):
        # Sunday 02:00 UTC is still Saturday evening in New York.
        sent = datetime(2020, 4, 12, 2, 0, tzinfo=timezone.utc)
        assert event_time(_update(sent), "America/New_York").day == 11


class TestCreateApplication:
    def test_requires_token(self, store):
        config = Config(supabase_url="u", supabase_key="k", telegram_bot_token="")
        with pytest.raises(ValueError):
            create_application(store, config)

    def test_store_is_shared(self, store):
        config = Config(
            supabase_url="u",
            supabase_key="k",
            telegram_bot_token=TOKEN,
        )
        application = create_application(store, config)
        assert application.bot_data[STORE_KEY] is store

    def test_rejects_unknown_timezone(self, store):
        config = Config(
            supabase_url="u",
            supabase_key="k",
            telegram_bot_token=TOKEN,
            timezone="Mars/Olympus_Mons",
        )
        with pytest.raises(ValueError, match="TURNIP_TIMEZONE"):
            create_application(store, config)


class FakeMessage:
    def __init__(self, date):
        self.date = date
        self.replies: list[str] = []

    async def reply_text(self, text, parse_mode=None):
        self.replies.append(text)


def _command_update(sent):
    return SimpleNamespace(
        message=FakeMessage(sent),
        effective_user=SimpleNamespace(id=42, full_name="Tom Nook", username="tom"),
    )


def _context(store, *args):
    config = Config(supabase_url="u", supabase_key="k", telegram_bot_token=TOKEN)
    return SimpleNamespace(
        args=list(args),
        application=SimpleNamespace(bot_data={STORE_KEY: store, CONFIG_KEY: config}),
    )


def _send(handler, store, sent, *args) -> list[str]:
    update = _command_update(sent)
    asyncio.run(handler(update, _context(store, *args)))
    return update.message.replies


class TestSellCommand:
    def test_records_base_price(self, store, fake_client):
        assert _send(sell_command, store, SUNDAY, "98") == [identity.base_price_recorded(98)]
        assert fake_client.rows(Tables.WEEKS)[0]["base_price"] == 98

    def test_negative_price_is_corrected(self, store, fake_client):
        replies = _send(sell_command, store, SUNDAY, "-90")
        assert replies == [identity.invalid_input("price must not be negative")]
        assert fake_client.rows(Tables.WEEKS) == []

    def test_missing_price_is_corrected(self, store, fake_client):
        [reply] = _send(sell_command, store, SUNDAY)
        assert reply.startswith(identity.EMOJIS["warning"])
        assert fake_client.calls == 0

    def test_store_failure(self, store, fake_client, offline_error, caplog):
        fake_client.fail_with = offline_error
        with caplog.at_level(logging.ERROR):
            replies = _send(sell_command, store, SUNDAY, "98")
        assert replies == [identity.store_failure()]
        assert any(
            r.levelno == logging.ERROR and r.name.endswith("telegram_bot") for r in caplog.records
        )


class TestBuyCommand:
    def test_records_inferred_slot(self, store, fake_client):
        _send(sell_command, store, SUNDAY, "98")
        replies = _send(buy_command, store, TUESDAY_AFTERNOON, "120")
        assert replies == [identity.observation_recorded(120, Weekday.TUESDAY, HalfDay.AFTERNOON)]
        [row] = fake_client.rows(Tables.OBSERVATIONS)
        assert (row["day_of_week"], row["half_day"], row["price"]) == (2, "pm", 120)

    def test_before_sell_asks_for_base_price(self, store, fake_client):
        replies = _send(buy_command, store, TUESDAY_AFTERNOON, "120")
        assert replies == [identity.missing_base_price()]
        assert "/sell" in replies[0]
        assert fake_client.rows(Tables.OBSERVATIONS) == []

    def test_sunday_without_day_is_corrected(self, store, fake_client):
        _send(sell_command, store, SUNDAY, "98")
        [reply] = _send(buy_command, store, SUNDAY, "100")
        assert reply.startswith(identity.EMOJIS["warning"])
        assert "Sunday" in reply
        assert fake_client.rows(Tables.OBSERVATIONS) == []

    def test_explicit_day_on_sunday(self, store):
        _send(sell_command, store, SUNDAY, "98")
        replies = _send(buy_command, store, SUNDAY, "100", "monday", "am")
        assert replies == [identity.observation_recorded(100, Weekday.MONDAY, HalfDay.MORNING)]

    def test_store_failure(self, store, fake_client, offline_error, caplog):
        _send(sell_command, store, SUNDAY, "98")
        fake_client.fail_with = offline_error
        with caplog.at_level(logging.ERROR):
            replies = _send(buy_command, store, TUESDAY_AFTERNOON, "120")
        assert replies == [identity.store_failure()]
        assert any(r.levelno == logging.ERROR for r in caplog.records)


class TestChartCommand:
    def test_links_current_week(self, store):
        _send(sell_command, store, SUNDAY, "98")
        _send(buy_command, store, TUESDAY_AFTERNOON, "120")
        [reply] = _send(chart_command, store, TUESDAY_AFTERNOON)
        assert reply.startswith(identity.EMOJIS["chart"])
        assert reply.endswith("https://turnipprophet.io/?prices=98-0-0-0-120-0-0-0-0-0-0-0-0")

    def test_unknown_user(self, store, fake_client):
        assert _send(chart_command, store, TUESDAY_AFTERNOON) == [identity.missing_base_price()]
        assert fake_client.rows(Tables.USERS) == []

    def test_store_failure(self, store, fake_client, offline_error, caplog):
        fake_client.fail_with = offline_error
        with caplog.at_level(logging.ERROR):
            replies = _send(chart_command, store, TUESDAY_AFTERNOON)
        assert replies == [identity.store_failure()]
        assert any(r.levelno == logging.ERROR for r in caplog.records)
