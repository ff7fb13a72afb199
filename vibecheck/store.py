"""JSON-backed relational store with per-table uniqueness constraints.

Each table is a list of row dicts. Rows get a uuid4 ``id`` and an ISO
``created_at`` on insert. Unique keys are declared per table in
``UNIQUE_KEYS`` and checked on every insert, update and upsert; a key with a
null component never collides (same as SQL NULL semantics).

Every write is a load-modify-save cycle run under two locks: a process-wide
lock per store file (threads) and a ``filelock`` lock file next to it
(processes). Uniqueness is therefore checked against the file as it is on
disk, not against a caller's stale copy. Saves go to a temp file that is
renamed over the store, so readers never see a partial document.
"""

import copy
import json
import os
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from pydantic import ValidationError

from .models.store import StoreData

UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    "items": [("source_id", "type")],
    "ratings": [("user_id", "item_id")],
    "daily_queues": [("user_id", "date")],
    "daily_queue_items": [],
    "daily_playlists": [("queue_id",)],
    "daily_playlist_items": [],
}

LOCK_TIMEOUT = 30.0

_path_locks: dict[str, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _path_lock(path: Path) -> threading.RLock:
    """One re-entrant lock per store file, shared by every Store in the process."""
    key = str(Path(path).resolve())
    with _path_locks_guard:
        return _path_locks.setdefault(key, threading.RLock())


class StoreError(Exception):
    """Raised when a store operation cannot be applied."""


class UniqueViolation(StoreError):
    """Raised when a write would duplicate a unique key."""

    def __init__(self, table: str, key: tuple[str, ...], value: tuple) -> None:
        self.table = table
        self.key = key
        self.value = value
        super().__init__(f"Duplicate key on {table}{key}: {value}")


class RowNotFound(StoreError):
    """Raised when an update targets a row that does not exist."""


def utcnow_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Store:
    """File-backed store exposing select/insert/update/upsert by key."""

    def __init__(self, store_path: Path) -> None:
        """Initialize store with the path to the store JSON file."""
        self.store_path = Path(store_path)
        self.lock_path = self.store_path.with_name(self.store_path.name + ".lock")
        self._thread_lock = _path_lock(self.store_path)
        self._file_lock = FileLock(str(self.lock_path), timeout=LOCK_TIMEOUT)
        # Open transaction snapshot, per thread
        self._local = threading.local()

    @property
    def _snapshot(self) -> StoreData | None:
        return getattr(self._local, "snapshot", None)

    @_snapshot.setter
    def _snapshot(self, data: StoreData | None) -> None:
        self._local.snapshot = data

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._thread_lock:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._file_lock.acquire()
            except Timeout as e:
                raise StoreError(f"Timed out waiting for {self.lock_path}") from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _read(self) -> StoreData:
        if not self.store_path.exists():
            return StoreData()
        try:
            with open(self.store_path) as f:
                data = json.load(f)
            return StoreData.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            raise StoreError(f"Cannot read store {self.store_path}: {e}") from e

    def _write(self, data: StoreData) -> None:
        data.updated_at = datetime.now(timezone.utc)
        tmp_path = self.store_path.with_name(self.store_path.name + ".tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(data.model_dump(mode="json"), f, indent=2, default=str)
            os.replace(tmp_path, self.store_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Cannot write store {self.store_path}: {e}") from e

    def load(self) -> StoreData:
        """Load store data from file. Returns empty store if file missing."""
        if self._snapshot is not None:
            return self._snapshot
        return self._read()

    def save(self, data: StoreData) -> None:
        """Save store data to file with indent=2. Deferred inside a transaction."""
        if self._snapshot is not None:
            return
        with self._locked():
            self._write(data)

    @contextmanager
    def transaction(self) -> Iterator["Store"]:
        """Group writes so they are persisted together or not at all.

        Holds the store lock from the first read to the final save. Nested
        calls join the outer transaction.
        """
        if self._snapshot is not None:
            yield self
            return
        with self._locked():
            self._snapshot = self._read()
            try:
                yield self
            except BaseException:
                self._snapshot = None
                raise
            data, self._snapshot = self._snapshot, None
            self._write(data)

    def select(self, table: str, order_by: str | None = None, **equals: Any) -> list[dict]:
        """Return rows whose columns equal all given values.

        ``order_by`` names a column; prefix it with ``-`` for descending order.
        """
        rows = self.load().tables.get(table, [])
        matched = [
            copy.deepcopy(row)
            for row in rows
            if all(row.get(column) == value for column, value in equals.items())
        ]
        if order_by:
            column = order_by.lstrip("-")
            matched.sort(
                key=lambda row: (row.get(column) is None, row.get(column)),
                reverse=order_by.startswith("-"),
            )
        return matched

    def select_in(self, table: str, column: str, values: Iterable[Any]) -> list[dict]:
        """Return rows whose ``column`` is one of ``values``."""
        wanted = set(values)
        rows = self.load().tables.get(table, [])
        return [copy.deepcopy(row) for row in rows if row.get(column) in wanted]

    def get(self, table: str, row_id: str) -> dict | None:
        """Return a single row by id."""
        for row in self.load().tables.get(table, []):
            if row.get("id") == row_id:
                return copy.deepcopy(row)
        return None

    def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        """Insert one or more rows. Nothing is written if any row conflicts."""
        batch = [rows] if isinstance(rows, dict) else list(rows)
        with self.transaction():
            existing = self.load().tables.setdefault(table, [])
            created = []
            for row in batch:
                new_row = copy.deepcopy(row)
                new_row.setdefault("id", str(uuid.uuid4()))
                new_row.setdefault("created_at", utcnow_iso())
                self._check_unique(table, existing + created, new_row)
                created.append(new_row)
            existing.extend(created)
        return copy.deepcopy(created)

    def update(self, table: str, row_id: str, changes: dict) -> dict:
        """Apply ``changes`` to the row with ``row_id`` and return the new row."""
        with self.transaction():
            rows = self.load().tables.get(table, [])
            for index, row in enumerate(rows):
                if row.get("id") != row_id:
                    continue
                updated = {**row, **copy.deepcopy(changes), "id": row_id}
                others = rows[:index] + rows[index + 1 :]
                self._check_unique(table, others, updated)
                rows[index] = updated
                return copy.deepcopy(updated)
            raise RowNotFound(f"No row {row_id} in {table}")

    def upsert(self, table: str, rows: dict | list[dict], on_conflict: tuple[str, ...]) -> None:
        """Insert rows, or update the existing row matching ``on_conflict``.

        Returns nothing; callers re-read the rows they need.
        """
        batch = [rows] if isinstance(rows, dict) else list(rows)
        with self.transaction():
            for row in batch:
                match = {column: row.get(column) for column in on_conflict}
                found = self.select(table, **match) if None not in match.values() else []
                if found:
                    self.update(table, found[0]["id"], row)
                else:
                    self.insert(table, row)

    def _check_unique(self, table: str, rows: list[dict], candidate: dict) -> None:
        for key in UNIQUE_KEYS.get(table, []):
            value = tuple(candidate.get(column) for column in key)
            if None in value:
                continue
            for row in rows:
                if tuple(row.get(column) for column in key) == value:
                    raise UniqueViolation(table, key, value)
