"""
Pytest fixtures and test configuration for focussync tests.
"""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from postgrest.exceptions import APIError

from focussync.coordinator import SyncCoordinator
from focussync.engine import ReconciliationEngine
from focussync.storage import MemoryLocalStore, SupabaseRemoteStore
from focussync.types import COLLECTION_TABLES

TEST_USER_ID = "7d1f0a52-3c4b-4e8e-9a51-0f6c2b9d4e10"
OTHER_USER_ID = "2b8e5d9c-1a7f-4c36-8f20-6e4d3a1b5c77"


def api_error(code: str, message: str) -> APIError:
    """Build a PostgREST APIError the way the client raises it."""
    return APIError({"code": code, "message": message, "hint": None, "details": None})


class FakeResponse:
    """Stand-in for postgrest's APIResponse."""

    def __init__(self, data: Any, count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Records one PostgREST builder chain and runs it on execute()."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self._client = client
        self.table = table
        self.op: Optional[str] = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.columns = "*"
        self.count: Optional[str] = None
        self.head = False
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_to: Optional[int] = None
        self.single = False

    def select(self, *columns, count=None, head=None):
        self.op = "select"
        self.columns = ",".join(columns) or "*"
        self.count = count
        self.head = bool(head)
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def upsert(self, row, on_conflict=""):
        self.op = "upsert"
        self.payload = row
        self.on_conflict = on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, field, value):
        self.filters.append((field, value))
        return self

    def order(self, field, desc=False):
        self.order_by = (field, desc)
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    def maybe_single(self):
        self.single = True
        return self

    def execute(self):
        return self._client._execute(self)


class FakeSupabaseClient:
    """In-memory Supabase client covering the calls SupabaseRemoteStore makes.

    Rows written by one request share a ``created_at`` (like ``now()`` in a
    single statement). Failures are injected per (table, operation).
    """

    def __init__(self):
        self.storage: Dict[str, List[Dict[str, Any]]] = {
            table: [] for table in COLLECTION_TABLES.values()
        }
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self.validate_uuid = False
        self._tick = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, op: str, exc: Exception):
        self.failures[(table, op)] = exc

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.storage[table]

    def _now(self) -> str:
        self._tick += 1
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        return (base + timedelta(milliseconds=self._tick)).isoformat()

    def _new_row(self, item: Dict[str, Any], created_at: str) -> Dict[str, Any]:
        row = copy.deepcopy(item)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", created_at)
        return row

    def _execute(self, q: FakeQuery):
        self.calls.append((q.table, q.op))
        exc = self.failures.get((q.table, q.op))
        if exc is not None:
            raise exc

        if self.validate_uuid:
            for field, value in q.filters:
                if field == "user_id":
                    try:
                        uuid.UUID(str(value))
                    except ValueError:
                        raise api_error(
                            "22P02", f'invalid input syntax for type uuid: "{value}"'
                        )

        rows = self.storage[q.table]
        matching = [r for r in rows if all(r.get(f) == v for f, v in q.filters)]
        created_at = self._now()

        if q.op == "insert":
            items = q.payload if isinstance(q.payload, list) else [q.payload]
            new_rows = [self._new_row(item, created_at) for item in items]
            rows.extend(new_rows)
            return FakeResponse(copy.deepcopy(new_rows))

        if q.op == "upsert":
            key = q.on_conflict
            existing = [r for r in rows if r.get(key) == q.payload.get(key)]
            if existing:
                existing[0].update(copy.deepcopy(q.payload))
                return FakeResponse([copy.deepcopy(existing[0])])
            row = self._new_row(q.payload, created_at)
            rows.append(row)
            return FakeResponse([copy.deepcopy(row)])

        if q.op == "delete":
            rows[:] = [r for r in rows if not all(r.get(f) == v for f, v in q.filters)]
            return FakeResponse(copy.deepcopy(matching))

        result = copy.deepcopy(matching)
        if q.order_by:
            field, desc = q.order_by
            result.sort(key=lambda r: r.get(field) or "", reverse=desc)
        if q.limit_to is not None:
            result = result[: q.limit_to]
        if q.columns != "*":
            columns = [c.strip() for c in q.columns.split(",")]
            result = [{c: r.get(c) for c in columns} for r in result]
        count = len(matching) if q.count == "exact" else None
        if q.head:
            result = []
        if q.single:
            if not result:
                return None
            if len(result) > 1:
                raise api_error("PGRST116", "JSON object requested, multiple rows returned")
            return FakeResponse(result[0], count)
        return FakeResponse(result, count)


class FakeClock:
    """Controllable epoch-ms clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(seconds * 1000)
        return self.now


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch):
    """Keep developer Supabase credentials out of tests."""
    for var in (
        "SUPABASE_URL",
        "SUPABASE_PUBLISHABLE_KEY",
        "SUPABASE_ANON_KEY",
        "SYNC_USER_ID",
        "SYNC_DB_PATH",
        "SYNC_MERGE_COOLDOWN_SECONDS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def user_id():
    return TEST_USER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture(name="api_error")
def api_error_factory():
    """Factory for PostgREST errors: api_error("42501", "permission denied")."""
    return api_error


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_supabase_client():
    """Fake Supabase client with per-table in-memory rows."""
    return FakeSupabaseClient()


@pytest.fixture
def remote(mock_supabase_client):
    return SupabaseRemoteStore(mock_supabase_client)


@pytest.fixture
def local(clock):
    return MemoryLocalStore(clock=clock)


@pytest.fixture
def engine(local, remote, clock):
    return ReconciliationEngine(local, remote, clock=clock)


@pytest.fixture
def coordinator(engine, clock):
    return SyncCoordinator(engine, cooldown_seconds=300, clock=clock)


@pytest.fixture
def make_device(remote, clock):
    """Factory for additional devices sharing the same cloud account."""

    def _make():
        device_local = MemoryLocalStore(clock=clock)
        return ReconciliationEngine(device_local, remote, clock=clock)

    return _make


@pytest.fixture
def sample_reminders():
    return [
        {
            "id": "rem1",
            "title": "Morning routine",
            "type": "daily",
            "time": "07:00",
            "enabled": True,
            "updatedAt": 1_000,
        },
        {
            "id": "rem2",
            "title": "Lunch break",
            "type": "weekday",
            "time": "12:30",
            "enabled": True,
            "updatedAt": 2_000,
        },
        {
            "id": "rem3",
            "title": "Evening wind-down",
            "type": "custom",
            "time": "21:00",
            "enabled": False,
            "updatedAt": 3_000,
        },
    ]


@pytest.fixture
def sample_apps():
    return {
        "com.apple.mobilemail": True,
        "com.facebook.Facebook": False,
        "com.twitter.twitter": True,
        "nativeSelectionToken": "opaque-token-abc",
    }


@pytest.fixture
def sample_analytics():
    # Newest first, as the device keeps them
    return [
        {"id": "a2", "startedAt": 5_000, "duration": 3600, "focusApps": ["com.twitter.twitter"]},
        {"id": "a1", "startedAt": 1_000, "duration": 1800, "focusApps": ["com.apple.mobilemail"]},
    ]
