"""
In-Memory Storage Implementation

Keeps every collection in a process-local list. Used for tests and for
running the app without Google credentials. It follows the same contract as
the Google Sheets backend, including server-assigned ids and timestamps.
"""

import copy
from datetime import datetime, timezone
from itertools import count
from typing import Any, Callable, Optional

from fintrack.services.storage.interface import (
    COLLECTIONS,
    RecordBackend,
    RecordNotFoundError,
    Row,
    StorageError,
)


class InMemoryRecordBackend(RecordBackend):
    """
    Process-local implementation of the record backend.

    Ids are sequential strings ("1", "2", ...) shared across collections.
    Rows are deep-copied on the way in and out so callers can never mutate
    stored state by accident.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._ids = count(1)
        self._seq = count(1)
        self._tables: dict[str, list[tuple[int, Row]]] = {
            name: [] for name in COLLECTIONS
        }

    def _table(self, collection: str) -> list[tuple[int, Row]]:
        try:
            return self._tables[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}")

    @staticmethod
    def _matches(row: Row, filters: dict[str, Any]) -> bool:
        return all(str(row.get(key)) == str(value) for key, value in filters.items())

    def _now(self) -> str:
        return self._clock().isoformat(timespec="microseconds")

    async def list_rows(
        self,
        collection: str,
        filters: dict[str, Any],
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Row]:
        matched = [
            (seq, row)
            for seq, row in self._table(collection)
            if self._matches(row, filters)
        ]
        matched.sort(
            key=lambda item: (str(item[1].get(order_by) or ""), item[0]),
            reverse=descending,
        )
        return [copy.deepcopy(row) for _, row in matched]

    async def insert_row(self, collection: str, row: Row) -> Row:
        table = self._table(collection)
        now = self._now()
        stored = copy.deepcopy(row)
        stored["id"] = str(next(self._ids))
        stored["created_at"] = now
        stored["updated_at"] = now
        table.append((next(self._seq), stored))
        return copy.deepcopy(stored)

    async def update_row(
        self,
        collection: str,
        filters: dict[str, Any],
        patch: Row,
    ) -> Row:
        for _, row in self._table(collection):
            if self._matches(row, filters):
                row.update(copy.deepcopy(patch))
                row["updated_at"] = self._now()
                return copy.deepcopy(row)
        raise RecordNotFoundError(f"No {collection} record matches {filters}")

    async def delete_row(self, collection: str, filters: dict[str, Any]) -> bool:
        table = self._table(collection)
        for index, (_, row) in enumerate(table):
            if self._matches(row, filters):
                del table[index]
                return True
        return False
