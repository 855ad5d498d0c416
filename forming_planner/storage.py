"""SQLite persistence for machines, batches and time-study records.

Each store is one table holding the pickled record next to its id.  Writes
run inside ``with connection:`` blocks, so a batch save either lands as a
whole or not at all.
"""

from __future__ import annotations

import logging
import pickle
import sqlite3
from typing import Any, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from .domain import Batch, Machine, TimeRecord
from .repository import DuplicateRecordError, RecordNotFoundError, matches

T = TypeVar("T")

logger = logging.getLogger(__name__)

SCHEMA = "CREATE TABLE IF NOT EXISTS {table} (id TEXT PRIMARY KEY, payload BLOB NOT NULL)"
UPSERT = (
    "INSERT INTO {table} (id, payload) VALUES (?, ?) "
    "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload"
)


class SQLiteRepository(Generic[T]):
    """Store of pickled records in the table ``table`` of ``connection``."""

    def __init__(self, connection: sqlite3.Connection, table: str) -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name {table!r}")
        self._connection = connection
        self._table = table
        with connection:
            connection.execute(SCHEMA.format(table=table))

    def _query(self, sql: str, *params: Any) -> sqlite3.Cursor:
        return self._connection.execute(sql.format(table=self._table), params)

    def _records(self) -> Iterator[T]:
        for (payload,) in self._query("SELECT payload FROM {table} ORDER BY rowid"):
            yield pickle.loads(payload)

    def __contains__(self, record_id: object) -> bool:
        if not isinstance(record_id, str):
            return False
        row = self._query("SELECT 1 FROM {table} WHERE id = ?", record_id).fetchone()
        return row is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        (count,) = self._query("SELECT COUNT(*) FROM {table}").fetchone()
        return count

    def add(self, record_id: str, record: T) -> None:
        try:
            with self._connection:
                self._query(
                    "INSERT INTO {table} (id, payload) VALUES (?, ?)",
                    record_id,
                    pickle.dumps(record),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(
                f"Record with id {record_id!r} already exists"
            ) from exc

    def save(self, record_id: str, record: T) -> None:
        self.save_many([(record_id, record)])

    def save_many(self, items: Iterable[Tuple[str, T]]) -> int:
        rows = [(record_id, pickle.dumps(record)) for record_id, record in items]
        with self._connection:
            self._connection.executemany(UPSERT.format(table=self._table), rows)
        return len(rows)

    def get(self, record_id: str) -> T:
        row = self._query("SELECT payload FROM {table} WHERE id = ?", record_id).fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record with id {record_id!r} not found")
        return pickle.loads(row[0])

    def delete(self, record_id: str) -> None:
        with self._connection:
            cursor = self._query("DELETE FROM {table} WHERE id = ?", record_id)
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record with id {record_id!r} not found")

    def list(self) -> List[T]:
        # rowid order keeps batches sharing a date in creation order.
        return list(self._records())

    def where(self, **criteria: Any) -> List[T]:
        return [record for record in self._records() if matches(record, criteria)]


class PlannerDatabase:
    """The planner's three stores over one SQLite connection."""

    def __init__(self, path: str) -> None:
        self._connection = sqlite3.connect(path, check_same_thread=False)
        self.machines: SQLiteRepository[Machine] = SQLiteRepository(self._connection, "machines")
        self.batches: SQLiteRepository[Batch] = SQLiteRepository(self._connection, "batches")
        self.time_records: SQLiteRepository[TimeRecord] = SQLiteRepository(
            self._connection, "time_records"
        )
        logger.debug(
            "Opened planner database at %s (%d machines, %d batches, %d time records)",
            path,
            len(self.machines),
            len(self.batches),
            len(self.time_records),
        )

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "PlannerDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "PlannerDatabase"]
