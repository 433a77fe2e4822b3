"""
Shared fixtures.

No real network in tests: the in-memory backend stands in for the remote
store, FlakyBackend injects failures per (operation, collection), and
FakeSheetsClient imitates the small part of gspread the Sheets backend uses.
"""

import time
from datetime import date
from typing import Any, Optional

import pytest

from fintrack.audit import AuditLogger
from fintrack.config import LedgerSettings
from fintrack.ledger import LedgerState
from fintrack.models.audit import AuditEvent
from fintrack.models.ledger import TenantScope
from fintrack.notifications import NotificationCenter
from fintrack.services.storage import (
    AuditStorageInterface,
    InMemoryRecordBackend,
    RemoteLedgerStore,
    StorageError,
)
from fintrack.services.storage.google_sheets import AUDIT_COLUMNS, COLLECTION_COLUMNS


TODAY = date(2025, 1, 15)


class FlakyBackend(InMemoryRecordBackend):
    """In-memory backend that raises on demand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._failures: dict[tuple[str, str], tuple[Exception, Optional[int]]] = {}
        self.calls: list[tuple[str, str]] = []

    def fail(
        self,
        operation: str,
        collection: str,
        error: Optional[Exception] = None,
        times: Optional[int] = None,
    ) -> None:
        """Make `operation` on `collection` raise `error` (`times` times, or forever)."""
        self._failures[(operation, collection)] = (
            error or StorageError(f"{operation} on {collection} rejected"),
            times,
        )

    def heal(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        key = (operation, collection)
        if key not in self._failures:
            return
        error, times = self._failures[key]
        if times is not None:
            if times <= 1:
                del self._failures[key]
            else:
                self._failures[key] = (error, times - 1)
        raise error

    async def list_rows(self, collection, filters, order_by="created_at", descending=True):
        self._maybe_fail("list", collection)
        return await super().list_rows(collection, filters, order_by, descending)

    async def insert_row(self, collection, row):
        self._maybe_fail("insert", collection)
        return await super().insert_row(collection, row)

    async def update_row(self, collection, filters, patch):
        self._maybe_fail("update", collection)
        return await super().update_row(collection, filters, patch)

    async def delete_row(self, collection, filters):
        self._maybe_fail("delete", collection)
        return await super().delete_row(collection, filters)


class RecordingAuditStorage(AuditStorageInterface):
    """Keeps every appended audit event in memory."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


class FakeWorksheet:
    """The gspread.Worksheet calls the Sheets backend makes, backed by a list."""

    def __init__(self, header: list[str], read_delay: float = 0.0):
        self.rows: list[list[str]] = [list(header)]
        self.read_delay = read_delay
        self.read_failures = 0
        self.append_failures = 0
        self.append_delay = 0.0
        self.update_failures = 0
        self.update_calls = 0

    def get_all_values(self) -> list[list[str]]:
        if self.read_delay:
            time.sleep(self.read_delay)
        if self.read_failures:
            self.read_failures -= 1
            raise ConnectionError("sheets read failed")
        return [list(row) for row in self.rows]

    def append_row(self, values: list[Any], value_input_option: Optional[str] = None) -> None:
        if self.append_delay:
            time.sleep(self.append_delay)
        if self.append_failures:
            self.append_failures -= 1
            raise ConnectionError("sheets append failed")
        self.rows.append([str(v) for v in values])

    def update(
        self,
        range_name: str,
        values: list[list[Any]],
        value_input_option: Optional[str] = None,
    ) -> None:
        """Write rows starting at an "A<row>" anchor, all or nothing."""
        self.update_calls += 1
        if self.update_failures:
            self.update_failures -= 1
            raise ConnectionError("sheets update failed")
        start = int(range_name.lstrip("A"))
        for offset, row_values in enumerate(values):
            self.rows[start - 1 + offset] = [str(v) for v in row_values]

    def delete_rows(self, index: int) -> None:
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient; one FakeWorksheet per collection."""

    def __init__(self):
        self.worksheets: dict[str, FakeWorksheet] = {}
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_worksheet(self, collection: str) -> FakeWorksheet:
        if collection not in self.worksheets:
            self.worksheets[collection] = FakeWorksheet(COLLECTION_COLUMNS[collection])
        return self.worksheets[collection]

    def get_audit_worksheet(self) -> FakeWorksheet:
        return self.audit


@pytest.fixture
def scope() -> TenantScope:
    return TenantScope(user_id="user-1", tenant_id="tenant-1")


@pytest.fixture
def other_scope() -> TenantScope:
    return TenantScope(user_id="user-2", tenant_id="tenant-2")


@pytest.fixture
def backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def store(backend) -> RemoteLedgerStore:
    return RemoteLedgerStore(backend)


@pytest.fixture
def audit_storage() -> RecordingAuditStorage:
    return RecordingAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings()


@pytest.fixture
def ledger(scope, store, audit_logger, notifications, ledger_settings) -> LedgerState:
    """An unloaded ledger for `scope`; tests call `await ledger.load()`."""
    return LedgerState(
        scope,
        store,
        audit_logger=audit_logger,
        notifications=notifications,
        settings=ledger_settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()
