"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote store because:
1. Users can view their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No multi-row transactions (compound ledger writes are sequential)
- Limited query capabilities (we filter and sort in Python)

Each collection lives in its own worksheet with a fixed header row.
gspread is synchronous, so every call runs in a worker thread and is bounded
by the configured request timeout.
"""

import asyncio
import functools
import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import GoogleSheetsSettings, get_settings
from fintrack.models.audit import AuditEvent
from fintrack.services.storage.interface import (
    BUDGET_CATEGORIES,
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
    Row,
    StorageError,
    StoreUnavailableError,
)


logger = structlog.get_logger(__name__)

SERVER_COLUMNS = ["id", "user_id", "tenant_id", "created_at", "updated_at"]

# Column layout per worksheet
COLLECTION_COLUMNS: dict[str, list[str]] = {
    BUDGET_CATEGORIES: SERVER_COLUMNS + ["name", "budget", "spent", "color", "icon"],
    INCOME_SOURCES: SERVER_COLUMNS + ["name", "amount", "date"],
    TRANSACTIONS: SERVER_COLUMNS + [
        "date",
        "description",
        "amount",
        "category",
        "mode",
        "status",
    ],
    SAVINGS_GOALS: SERVER_COLUMNS + [
        "title",
        "target_amount",
        "current_amount",
        "target_date",
        "priority",
        "category",
        "description",
        "status",
    ],
    REMINDERS: SERVER_COLUMNS + [
        "title",
        "due_date",
        "description",
        "amount",
        "category",
        "priority",
        "completed",
    ],
    READINGS: SERVER_COLUMNS + [
        "reading_type",
        "meter_number",
        "current_reading",
        "previous_reading",
        "consumption",
        "cost_per_unit",
        "total_cost",
        "reading_date",
        "notes",
    ],
    PROFILES: SERVER_COLUMNS + ["email", "full_name"],
}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "tenant_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=rows,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def get_worksheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        return self._get_or_create(
            self._settings.sheet_name_for(collection),
            COLLECTION_COLUMNS[collection],
            rows=1000,
        )

    def get_audit_worksheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRecordBackend(RecordBackend):
    """
    Google Sheets implementation of the record backend.

    One record per row. Values are stored as text; empty cells read back
    as None and typed parsing is left to the models.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        timeout_seconds: Optional[float] = None,
        read_attempts: Optional[int] = None,
        retry_wait: float = 1.0,
    ):
        ledger_settings = get_settings().ledger
        self._client = client or GoogleSheetsClient()
        self._timeout = timeout_seconds or ledger_settings.request_timeout_seconds
        self._read_attempts = read_attempts or ledger_settings.read_retry_attempts
        self._retry_wait = retry_wait

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _cell(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return str(value)

    def _row_to_values(self, collection: str, row: Row) -> list[str]:
        """Convert a row dict to worksheet cells in column order."""
        return [self._cell(row.get(column)) for column in COLLECTION_COLUMNS[collection]]

    def _values_to_row(self, collection: str, values: list[str]) -> Row:
        """Convert worksheet cells to a row dict."""
        # Handle missing columns gracefully
        def safe_get(index: int) -> Optional[str]:
            try:
                return values[index] if values[index] != "" else None
            except IndexError:
                return None

        return {
            column: safe_get(index)
            for index, column in enumerate(COLLECTION_COLUMNS[collection])
        }

    @staticmethod
    def _matches(row: Row, filters: dict[str, Any]) -> bool:
        return all(row.get(key) == str(value) for key, value in filters.items())

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _call(self, func: Callable, *args, **kwargs):
        """Run a blocking gspread call in a worker thread, bounded by the timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(functools.partial(func, *args, **kwargs)),
            timeout=self._timeout,
        )

    async def _read_all(self, collection: str) -> list[tuple[int, Row]]:
        """Read every data row as (sheet_row_number, row)."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._read_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=10),
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        ):
            with attempt:
                try:
                    sheet = await self._call(self._client.get_worksheet, collection)
                    values = await self._call(sheet.get_all_values)
                except StorageError:
                    raise
                except asyncio.TimeoutError:
                    raise StorageError(f"Timed out reading {collection}")
                except Exception as e:
                    raise StorageError(f"Failed to read {collection}: {e}")
        # Row 1 is the header
        return [
            (index, self._values_to_row(collection, raw))
            for index, raw in enumerate(values[1:], start=2)
            if raw and raw[0]
        ]

    async def _find(self, collection: str, filters: dict[str, Any]) -> Optional[tuple[int, Row]]:
        for index, row in await self._read_all(collection):
            if self._matches(row, filters):
                return index, row
        return None

    # -------------------------------------------------------------------------
    # RecordBackend
    # -------------------------------------------------------------------------

    async def list_rows(
        self,
        collection: str,
        filters: dict[str, Any],
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Row]:
        matched = [
            (index, row)
            for index, row in await self._read_all(collection)
            if self._matches(row, filters)
        ]
        matched.sort(
            key=lambda item: (item[1].get(order_by) or "", item[0]),
            reverse=descending,
        )
        return [row for _, row in matched]

    async def insert_row(self, collection: str, row: Row) -> Row:
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        stored = dict(row)
        stored["id"] = uuid4().hex
        stored["created_at"] = now
        stored["updated_at"] = now
        try:
            sheet = await self._call(self._client.get_worksheet, collection)
            await self._call(
                sheet.append_row,
                self._row_to_values(collection, stored),
                value_input_option="RAW",
            )
        except asyncio.TimeoutError:
            raise OutcomeUnknownError(collection, "insert")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection}: {e}")
        return self._values_to_row(collection, self._row_to_values(collection, stored))

    async def update_row(
        self,
        collection: str,
        filters: dict[str, Any],
        patch: Row,
    ) -> Row:
        found = await self._find(collection, filters)
        if found is None:
            raise RecordNotFoundError(f"No {collection} record matches {filters}")

        row_number, row = found
        updated = dict(row)
        updated.update({key: self._cell(value) or None for key, value in patch.items()})
        updated["updated_at"] = datetime.now(timezone.utc).isoformat(timespec="microseconds")

        try:
            sheet = await self._call(self._client.get_worksheet, collection)
            # One range write for the whole row, so a failure leaves it untouched
            await self._call(
                sheet.update,
                range_name=f"A{row_number}",
                values=[self._row_to_values(collection, updated)],
                value_input_option="RAW",
            )
        except asyncio.TimeoutError:
            raise OutcomeUnknownError(collection, "update")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection}: {e}")
        return updated

    async def delete_row(self, collection: str, filters: dict[str, Any]) -> bool:
        found = await self._find(collection, filters)
        if found is None:
            return False
        try:
            sheet = await self._call(self._client.get_worksheet, collection)
            await self._call(sheet.delete_rows, found[0])
        except asyncio.TimeoutError:
            raise OutcomeUnknownError(collection, "delete")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {collection}: {e}")
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_worksheet)
            await asyncio.to_thread(
                sheet.append_row,
                event.to_sheets_row(),
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
