"""Shared fixtures: an in-memory stand-in for the Supabase table API."""

import copy
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pytest
from postgrest.exceptions import APIError

from turnip_tracker.services.price_store import PriceStore
from turnip_tracker.shared.supabase_client import Tables

# child table -> (column, parent table)
FOREIGN_KEYS = {
    Tables.WEEKS: ("user_id", Tables.USERS),
    Tables.OBSERVATIONS: ("week_id", Tables.WEEKS),
}


@dataclass
class FakeResponse:
    data: list


class FakeQuery:
    """Supports the subset of the query builder the store uses."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.filters: list[tuple[str, Any]] = []
        self.row: Optional[dict] = None
        self.on_conflict: Optional[str] = None
        self.limit_n: Optional[int] = None
        self.order_by: Optional[tuple[str, bool]] = None

    def select(self, columns: str = "*"):
        return self

    def eq(self, column: str, value: Any):
        self.filters.append((column, value))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def upsert(self, row: dict, on_conflict: str = ""):
        self.row = dict(row)
        self.on_conflict = on_conflict
        return self

    def execute(self) -> FakeResponse:
        self.client.calls += 1
        if self.client.fail_with is not None:
            raise self.client.fail_with
        if self.row is not None:
            return FakeResponse([self.client.upsert(self.table, self.row, self.on_conflict)])
        rows = [
            r for r in self.client.tables[self.table]
            if all(r.get(col) == val for col, val in self.filters)
        ]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda r: r[column], reverse=desc)
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return FakeResponse(copy.deepcopy(rows))


class FakeSupabaseClient:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {
            Tables.USERS: [],
            Tables.WEEKS: [],
            Tables.OBSERVATIONS: [],
        }
        self._next_id = 1
        self.calls = 0
        self.fail_with: Optional[Exception] = None
        # Pause between the key lookup and the insert, to widen race windows.
        self.delay = 0.0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, table: str) -> list[dict]:
        return self.tables[table]

    def upsert(self, table: str, row: dict, on_conflict: str) -> dict:
        fk = FOREIGN_KEYS.get(table)
        if fk is not None:
            column, parent = fk
            if not any(p["id"] == row[column] for p in self.tables[parent]):
                raise APIError({
                    "code": "23503",
                    "message": f"insert or update on table \"{table}\" violates foreign key constraint",
                    "details": None,
                    "hint": None,
                })

        keys = [k.strip() for k in on_conflict.split(",") if k.strip()]
        for existing in self.tables[table]:
            if keys and all(existing.get(k) == row.get(k) for k in keys):
                existing.update(row)
                return dict(existing)

        if self.delay:
            time.sleep(self.delay)
        new_row = dict(row, id=self._next_id)
        self._next_id += 1
        self.tables[table].append(new_row)
        return dict(new_row)


@pytest.fixture
def fake_client():
    return FakeSupabaseClient()


@pytest.fixture
def store(fake_client):
    return PriceStore(fake_client)


@pytest.fixture
def offline_error():
    return httpx.ConnectError("connection refused")
