"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Run against Google Sheets today and a real database later
2. Use in-memory storage for testing and offline development
3. Keep the ledger engine decoupled from any storage implementation

Backends speak JSON-compatible dict rows. Typed conversion happens one layer
up, in RemoteLedgerStore.

CONTRACT every backend must honour:
- insert_row assigns `id`, `created_at` and `updated_at` and returns the
  persisted row
- list_rows orders by `order_by`; rows with equal keys keep insertion order
  (reversed when descending), so "most recent first" is stable
- a write either fully succeeds or raises with nothing written
- filters are exact-match on every given column; a row outside them is
  invisible (this is how tenant scoping is enforced)
"""

from abc import ABC, abstractmethod
from typing import Any

from fintrack.models.audit import AuditEvent


# Collection names, shared with the remote schema
BUDGET_CATEGORIES = "budget_categories"
INCOME_SOURCES = "income_sources"
TRANSACTIONS = "transactions"
SAVINGS_GOALS = "savings_goals"
REMINDERS = "reminders"
READINGS = "readings"
PROFILES = "profiles"

COLLECTIONS = (
    BUDGET_CATEGORIES,
    INCOME_SOURCES,
    TRANSACTIONS,
    SAVINGS_GOALS,
    REMINDERS,
    READINGS,
    PROFILES,
)

Row = dict[str, Any]


class RecordBackend(ABC):
    """
    Abstract interface for the remote persistent store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_rows(
        self,
        collection: str,
        filters: dict[str, Any],
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Row]:
        """
        List rows matching all filters.

        Args:
            collection: Collection name
            filters: Column -> value exact matches
            order_by: Column to sort on
            descending: Sort direction

        Returns:
            Matching rows in the requested order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert_row(self, collection: str, row: Row) -> Row:
        """
        Insert a single row.

        Returns:
            The persisted row including server-assigned fields

        Raises:
            StorageError: If the write fails (nothing was written)
            OutcomeUnknownError: If the transport timed out
        """
        pass

    @abstractmethod
    async def update_row(
        self,
        collection: str,
        filters: dict[str, Any],
        patch: Row,
    ) -> Row:
        """
        Update the single row matching all filters.

        Returns:
            The row after the update

        Raises:
            RecordNotFoundError: If no row matches
            StorageError: If the write fails
            OutcomeUnknownError: If the transport timed out
        """
        pass

    @abstractmethod
    async def delete_row(self, collection: str, filters: dict[str, Any]) -> bool:
        """
        Delete the single row matching all filters.

        Returns:
            True if a row was deleted, False if none matched
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """No record matched the id within the given scope."""
    pass


class StoreUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass


class RemoteWriteFailed(StorageError):
    """An insert or update was rejected; nothing was written."""

    def __init__(self, collection: str, operation: str, message: str):
        self.collection = collection
        self.operation = operation
        super().__init__(f"{operation} on {collection} failed: {message}")


class OutcomeUnknownError(StorageError):
    """The transport gave up before the store answered; the write may or may not exist."""

    def __init__(self, collection: str, operation: str, message: str = "request timed out"):
        self.collection = collection
        self.operation = operation
        super().__init__(f"{operation} on {collection}: outcome unknown ({message})")
