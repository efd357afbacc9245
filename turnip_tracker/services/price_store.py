"""
Price Store - Users, weeks and half-day observations in Supabase.

Every write is a single PostgREST upsert keyed on the table's natural unique
constraint, so the database resolves "insert or update" atomically:

    turnip_users         unique (external_id)
    turnip_weeks         unique (user_id, week_start)
    turnip_observations  unique (week_id, day_of_week, half_day)

Upserts on the same key are also serialized inside the process. Nothing is
cached; every call round-trips to the database.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterator, Optional, Union

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from turnip_tracker.config import Config
from turnip_tracker.services.calendar import (
    HalfDay,
    Weekday,
    normalize_week,
    resolve_slot,
    slot_index,
)
from turnip_tracker.shared.errors import InvalidInput, NotFound, StoreUnavailable
from turnip_tracker.shared.supabase_client import Tables, create_supabase_client

logger = logging.getLogger(__name__)

# Postgres error code raised when a row references a missing parent.
FOREIGN_KEY_VIOLATION = "23503"

# Upsert keys share a fixed pool of locks, picked by hash.
LOCK_STRIPES = 64


@dataclass(frozen=True)
class User:
    id: int
    external_id: str
    display_name: str

    @classmethod
    def from_row(cls, row: dict) -> "User":
        return cls(
            id=int(row["id"]),
            external_id=str(row["external_id"]),
            display_name=row.get("display_name") or "",
        )


@dataclass(frozen=True)
class Week:
    """One user's market week, anchored on its Sunday base price."""

    id: int
    user_id: int
    week_start: date
    base_price: int

    @classmethod
    def from_row(cls, row: dict) -> "Week":
        week_start = row["week_start"]
        if isinstance(week_start, str):
            week_start = date.fromisoformat(week_start[:10])
        return cls(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            week_start=week_start,
            base_price=int(row["base_price"]),
        )


@dataclass(frozen=True)
class Observation:
    """A single half-day price reading, Monday to Saturday."""

    id: int
    week_id: int
    day_of_week: Weekday
    half_day: HalfDay
    price: int

    @property
    def slot(self) -> int:
        return slot_index(self.day_of_week, self.half_day)

    @classmethod
    def from_row(cls, row: dict) -> "Observation":
        return cls(
            id=int(row["id"]),
            week_id=int(row["week_id"]),
            day_of_week=Weekday(int(row["day_of_week"])),
            half_day=HalfDay(row["half_day"]),
            price=int(row["price"]),
        )


def _check_price(price: int) -> int:
    if isinstance(price, bool) or not isinstance(price, int):
        raise InvalidInput(f"price must be a whole number, got {price!r}")
    if price < 0:
        raise InvalidInput(f"price must not be negative, got {price}")
    return price


def _normalize_external_id(external_id: str) -> str:
    external_id = str(external_id).strip()
    if not external_id:
        raise InvalidInput("user identity must not be empty")
    return external_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PriceStore:
    """Repository for the turnip tables, bound to one Supabase client."""

    def __init__(self, client: Client):
        self._client: Optional[Client] = client
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def __enter__(self) -> "PriceStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Release the client handle. Further calls raise StoreUnavailable."""
        if self._client is not None:
            logger.info("Price store closed")
        self._client = None

    @property
    def closed(self) -> bool:
        return self._client is None

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _table(self, name: str):
        if self._client is None:
            raise StoreUnavailable("price store is closed")
        return self._client.table(name)

    def _key_lock(self, *key: Any) -> threading.Lock:
        return self._locks[hash(key) % LOCK_STRIPES]

    def _execute(self, query, action: str) -> list[dict]:
        """Run a query and classify any failure."""
        try:
            result = query.execute()
        except APIError as e:
            if e.code == FOREIGN_KEY_VIOLATION:
                raise NotFound(f"{action}: referenced row does not exist") from e
            logger.error(f"Store error during {action}: {e.message}", exc_info=True)
            raise StoreUnavailable(f"{action} failed: {e.message}") from e
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Store unreachable during {action}: {e}", exc_info=True)
            raise StoreUnavailable(f"{action} failed: {e}") from e
        return result.data or []

    def _upsert_one(self, table: str, row: dict, on_conflict: str, action: str) -> dict:
        data = self._execute(
            self._table(table).upsert(row, on_conflict=on_conflict),
            action,
        )
        if not data:
            raise StoreUnavailable(f"{action} returned no row")
        return data[0]

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #

    def get_or_create_user(self, external_id: str, display_name: str) -> int:
        """
        Return the id of the user with this external identity, creating it on
        first sight. The display name is refreshed on every call.
        """
        external_id = _normalize_external_id(external_id)

        with self._key_lock(Tables.USERS, external_id):
            row = self._upsert_one(
                Tables.USERS,
                {
                    "external_id": external_id,
                    "display_name": display_name or "",
                    "updated_at": _now(),
                },
                on_conflict="external_id",
                action="get_or_create_user",
            )
        user_id = int(row["id"])
        logger.debug(f"User {external_id} -> {user_id}")
        return user_id

    def get_user(self, external_id: str) -> User:
        external_id = _normalize_external_id(external_id)
        data = self._execute(
            self._table(Tables.USERS)
            .select("*")
            .eq("external_id", external_id)
            .limit(1),
            "get_user",
        )
        if not data:
            raise NotFound(f"no user with identity {external_id}")
        return User.from_row(data[0])

    # ------------------------------------------------------------------ #
    # Weeks
    # ------------------------------------------------------------------ #

    def upsert_week(self, user_id: int, event_time: Union[datetime, date], base_price: int) -> int:
        """Record the base price for the week containing `event_time`."""
        _check_price(base_price)
        week_start = normalize_week(event_time)

        with self._key_lock(Tables.WEEKS, user_id, week_start):
            row = self._upsert_one(
                Tables.WEEKS,
                {
                    "user_id": user_id,
                    "week_start": week_start.isoformat(),
                    "base_price": base_price,
                    "updated_at": _now(),
                },
                on_conflict="user_id,week_start",
                action="upsert_week",
            )
        week_id = int(row["id"])
        logger.info(f"Week {week_id} (user {user_id}, {week_start}) base price {base_price}")
        return week_id

    def get_week(self, user_id: int, event_time: Union[datetime, date]) -> Week:
        """
        Look up the week containing `event_time` for a user.

        Raises:
            NotFound: the user has not recorded a base price for that week.
        """
        week_start = normalize_week(event_time)
        data = self._execute(
            self._table(Tables.WEEKS)
            .select("*")
            .eq("user_id", user_id)
            .eq("week_start", week_start.isoformat())
            .limit(1),
            "get_week",
        )
        if not data:
            raise NotFound(f"no base price for user {user_id} in week of {week_start}")
        return Week.from_row(data[0])

    def get_week_by_id(self, week_id: int) -> Week:
        data = self._execute(
            self._table(Tables.WEEKS).select("*").eq("id", week_id).limit(1),
            "get_week_by_id",
        )
        if not data:
            raise NotFound(f"no week with id {week_id}")
        return Week.from_row(data[0])

    # ------------------------------------------------------------------ #
    # Observations
    # ------------------------------------------------------------------ #

    def upsert_observation(
        self,
        week_id: int,
        day_of_week: Weekday,
        half_day: HalfDay,
        price: int,
    ) -> int:
        """
        Record the price for one half-day slot of a week. Resubmitting the
        same slot overwrites the price and keeps the id.

        Raises:
            InvalidSlot: Sunday or an unknown day / half-day.
            NotFound: the week does not exist.
        """
        _check_price(price)
        day, half = resolve_slot(day_of_week, half_day)

        with self._key_lock(Tables.OBSERVATIONS, week_id, int(day), half.value):
            row = self._upsert_one(
                Tables.OBSERVATIONS,
                {
                    "week_id": week_id,
                    "day_of_week": int(day),
                    "half_day": half.value,
                    "price": price,
                    "updated_at": _now(),
                },
                on_conflict="week_id,day_of_week,half_day",
                action="upsert_observation",
            )
        observation_id = int(row["id"])
        logger.info(f"Observation {observation_id} (week {week_id}, {day.label} {half.value}) price {price}")
        return observation_id

    def list_observations(self, week_id: int) -> list[Observation]:
        data = self._execute(
            self._table(Tables.OBSERVATIONS).select("*").eq("week_id", week_id).order("id"),
            "list_observations",
        )
        return [Observation.from_row(row) for row in data]

    # ------------------------------------------------------------------ #
    # Health
    # ------------------------------------------------------------------ #

    def ping(self) -> bool:
        """Check that the users table is reachable."""
        try:
            self._execute(self._table(Tables.USERS).select("id").limit(1), "ping")
            return True
        except StoreUnavailable as e:
            logger.warning(f"Connection test failed: {e}")
            return False


@contextmanager
def open_store(config: Optional[Config] = None) -> Iterator[PriceStore]:
    """Open the process-wide store and close it when the block exits."""
    store = PriceStore(create_supabase_client(config))
    try:
        yield store
    finally:
        store.close()
