"""
Shared fixtures: an in-memory Supabase stand-in and a recording Drive client.

FakeSupabase implements the subset of the supabase-py query builder used by
ezkiosk (table/select/eq/in_/contains/lte/gte/order/limit/insert/update/upsert/
execute, rpc and storage.from_().get_public_url).
"""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from ezkiosk.infrastructure.error_handling import DriveApiError
from ezkiosk.integrations.google_drive import FOLDER_MIME_TYPE, DriveFile
from ezkiosk.utils import FixedClock, set_clock

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    # -- builders
    def select(self, columns="*"):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def contains(self, column, values):
        self.filters.append(lambda row: all(v in (row.get(column) or []) for v in values))
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def insert(self, data):
        self.op, self.payload = "insert", data
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    # -- execution
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        error = self.db.failures.get((self.table, self.op))
        if error is not None:
            raise error
        handler = getattr(self, f"_exec_{self.op}")
        return SimpleNamespace(data=copy.deepcopy(handler()))

    def _exec_select(self):
        found = [r for r in self.db.tables.get(self.table, []) if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            found.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_n is not None:
            found = found[: self.limit_n]
        return found

    def _exec_insert(self):
        items = self.payload if isinstance(self.payload, list) else [self.payload]
        return [self.db.add(self.table, dict(item)) for item in items]

    def _exec_update(self):
        updated = []
        for row in self.db.tables.get(self.table, []):
            if self._matches(row):
                row.update(self.payload)
                updated.append(row)
        return updated

    def _exec_upsert(self):
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        for row in self.db.tables.get(self.table, []):
            if all(row.get(k) == self.payload.get(k) for k in keys):
                row.update(self.payload)
                return [row]
        return [self.db.add(self.table, dict(self.payload))]


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.calls.append((self.name, "rpc"))
        error = self.db.failures.get((self.name, "rpc"))
        if error is not None:
            raise error
        return SimpleNamespace(data=self.db.rpc_results.get(self.name))


class FakeStorageBucket:
    def __init__(self, bucket):
        self.bucket = bucket

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.bucket}/{path}"


class FakeStorage:
    def from_(self, bucket):
        return FakeStorageBucket(bucket)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.rpc_results = {}
        self.storage = FakeStorage()
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params)

    def add(self, table, row):
        n = next(self._ids)
        row.setdefault("id", f"{table}-{n}")
        row.setdefault("created_at", (FIXED_NOW + timedelta(seconds=n)).isoformat())
        self.tables.setdefault(table, []).append(row)
        return row

    def seed(self, table, *rows):
        return [self.add(table, dict(r)) for r in rows]

    def fail(self, table, op, error=None):
        self.failures[(table, op)] = error or RuntimeError(f"{table} {op} unavailable")

    def rows(self, table, **filters):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in filters.items())]


class FakeDrive:
    def __init__(self):
        self.moves = []
        self.uploads = []
        self.folders = {}
        self.failing_files = set()
        self.raising_files = {}
        self._ids = itertools.count(1)

    def move_file(self, file_id, from_folder_id, to_folder_id):
        if file_id in self.failing_files:
            raise DriveApiError(f"API request failed: 404 Not Found - fileNotFound {file_id}", status_code=404, retryable=False)
        if file_id in self.raising_files:
            raise self.raising_files[file_id]
        self.moves.append((file_id, from_folder_id, to_folder_id))

    def upload_file(self, data, file_name, mime_type, parent_id=None):
        file_id = f"drive-file-{next(self._ids)}"
        self.uploads.append((file_name, mime_type, parent_id, data))
        return DriveFile(id=file_id, name=file_name, mime_type=mime_type, parents=[parent_id] if parent_id else [])

    def ensure_folder(self, name, parent_id=None, page_size=200):
        key = (name, parent_id or "root")
        if key not in self.folders:
            self.folders[key] = DriveFile(
                id=f"folder-{next(self._ids)}", name=name, mime_type=FOLDER_MIME_TYPE, parents=[parent_id or "root"],
            )
        return self.folders[key]

    def test_connection(self):
        return {"success": True, "message": "Google Drive connection successful!"}


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def fake_drive():
    return FakeDrive()


@pytest.fixture
def fixed_clock():
    set_clock(FixedClock(FIXED_NOW))
    yield FIXED_NOW
    set_clock(None)
