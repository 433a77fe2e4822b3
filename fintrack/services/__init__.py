"""Services package."""

from fintrack.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordBackend,
    InMemoryRecordBackend,
    OutcomeUnknownError,
    RecordBackend,
    RecordNotFoundError,
    RemoteLedgerStore,
    RemoteWriteFailed,
    StorageError,
    StoreUnavailableError,
)

__all__ = [
    "AuditStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordBackend",
    "InMemoryRecordBackend",
    "OutcomeUnknownError",
    "RecordBackend",
    "RecordNotFoundError",
    "RemoteLedgerStore",
    "RemoteWriteFailed",
    "StorageError",
    "StoreUnavailableError",
]
