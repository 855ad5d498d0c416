"""Record store contract and the in-memory store used by the planner service."""

from __future__ import annotations

from typing import Any, Dict, Generic, Iterable, Iterator, List, Protocol, Tuple, TypeVar

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for record store errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when inserting a record whose id is already taken."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class RecordStore(Protocol[T]):
    """Operations the planner service needs from a machine, batch or record store.

    Stores list records in insertion order.  ``where`` keeps the records whose
    attributes equal every given criterion, in the same order.
    """

    def __contains__(self, record_id: object) -> bool: ...

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[T]: ...

    def add(self, record_id: str, record: T) -> None: ...

    def save(self, record_id: str, record: T) -> None: ...

    def save_many(self, items: Iterable[Tuple[str, T]]) -> int: ...

    def get(self, record_id: str) -> T: ...

    def delete(self, record_id: str) -> None: ...

    def list(self) -> List[T]: ...

    def where(self, **criteria: Any) -> List[T]: ...


_UNSET = object()


def matches(record: Any, criteria: Dict[str, Any]) -> bool:
    return all(
        getattr(record, name, _UNSET) == expected for name, expected in criteria.items()
    )


def _missing(record_id: str) -> RecordNotFoundError:
    return RecordNotFoundError(f"Record with id {record_id!r} not found")


class InMemoryRepository(Generic[T]):
    """Dictionary-backed store; records are kept by reference."""

    def __init__(self) -> None:
        self._records: Dict[str, T] = {}

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        # Snapshot, so callers may save or delete while iterating.
        return iter(self.list())

    def add(self, record_id: str, record: T) -> None:
        if record_id in self._records:
            raise DuplicateRecordError(f"Record with id {record_id!r} already exists")
        self._records[record_id] = record

    def save(self, record_id: str, record: T) -> None:
        self._records[record_id] = record

    def save_many(self, items: Iterable[Tuple[str, T]]) -> int:
        pending = dict(items)
        self._records.update(pending)
        return len(pending)

    def get(self, record_id: str) -> T:
        if record_id not in self._records:
            raise _missing(record_id)
        return self._records[record_id]

    def delete(self, record_id: str) -> None:
        if record_id not in self._records:
            raise _missing(record_id)
        del self._records[record_id]

    def list(self) -> List[T]:
        return list(self._records.values())

    def where(self, **criteria: Any) -> List[T]:
        return [record for record in self._records.values() if matches(record, criteria)]


__all__ = [
    "RecordStore",
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "matches",
]
