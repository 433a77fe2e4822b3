"""
Storage Services Package

Provides the abstract record backend, its Google Sheets and in-memory
implementations, and the typed RemoteLedgerStore the ledger engine talks to.
"""

from fintrack.services.storage.interface import (
    BUDGET_CATEGORIES,
    COLLECTIONS,
    INCOME_SOURCES,
    PROFILES,
    READINGS,
    REMINDERS,
    SAVINGS_GOALS,
    TRANSACTIONS,
    AuditStorageInterface,
    OutcomeUnknownError,
    RecordBackend,
    RecordNotFoundError,
    RemoteWriteFailed,
    StorageError,
    StoreUnavailableError,
)
from fintrack.services.storage.memory import InMemoryRecordBackend
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordBackend,
)
from fintrack.services.storage.ledger_store import RemoteLedgerStore

__all__ = [
    # Collections
    "BUDGET_CATEGORIES",
    "COLLECTIONS",
    "INCOME_SOURCES",
    "PROFILES",
    "READINGS",
    "REMINDERS",
    "SAVINGS_GOALS",
    "TRANSACTIONS",
    # Interfaces
    "AuditStorageInterface",
    "RecordBackend",
    # Exceptions
    "OutcomeUnknownError",
    "RecordNotFoundError",
    "RemoteWriteFailed",
    "StorageError",
    "StoreUnavailableError",
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordBackend",
    "InMemoryRecordBackend",
    "RemoteLedgerStore",
]
