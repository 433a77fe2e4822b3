"""
Utility-meter readings.

Consumption and total cost are derived from the draft on every save, so a
stored reading always agrees with its own meter values.
"""

from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import LedgerResult, ResultStatus
from fintrack.models.planning import MeterReading, MeterReadingDraft
from fintrack.planning.base import ScopedPlanner
from fintrack.services.storage import READINGS, StorageError


class MeterReadingLog(ScopedPlanner):
    """Meter readings for one tenant scope, latest reading date first."""

    collection = READINGS

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._readings: list[MeterReading] = []

    @property
    def readings(self) -> list[MeterReading]:
        return list(self._readings)

    def _sort(self) -> None:
        self._readings.sort(key=lambda r: r.reading_date, reverse=True)

    async def list_readings(self) -> LedgerResult:
        try:
            readings = await self._store.list_readings(self._scope)
        except StorageError as e:
            return self._read_failed("list_readings", e, "Failed to load readings")

        self._readings = readings
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message=f"Loaded {len(readings)} readings",
            operation="list_readings",
            records=list(readings),
        )

    async def record_reading(self, draft: MeterReadingDraft) -> LedgerResult:
        try:
            reading = await self._store.insert_reading(self._scope, draft)
        except StorageError as e:
            return await self._write_failed("record_reading", e, "Failed to save reading")

        self._readings.insert(0, reading)
        self._sort()
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.READING_RECORDED,
                self._scope,
                READINGS,
                reading.id,
                f"{reading.reading_type} reading recorded",
                details={
                    "consumption": str(reading.consumption),
                    "total_cost": str(reading.total_cost),
                },
            )

        self._notifications.success("Reading added successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reading recorded",
            operation="record_reading",
            completed_steps=["reading"],
            records=[reading],
        )

    async def update_reading(self, reading_id: str, draft: MeterReadingDraft) -> LedgerResult:
        try:
            updated = await self._store.update_reading(self._scope, reading_id, draft)
        except StorageError as e:
            return await self._write_failed("update_reading", e, "Failed to update reading")

        self._readings = [updated if r.id == updated.id else r for r in self._readings]
        self._sort()
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.READING_UPDATED,
                self._scope,
                READINGS,
                updated.id,
                f"{updated.reading_type} reading updated",
                details={
                    "consumption": str(updated.consumption),
                    "total_cost": str(updated.total_cost),
                },
            )

        self._notifications.success("Reading updated successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reading updated",
            operation="update_reading",
            completed_steps=["reading"],
            records=[updated],
        )

    async def delete_reading(self, reading_id: str) -> LedgerResult:
        try:
            deleted = await self._store.delete_reading(self._scope, reading_id)
        except StorageError as e:
            return await self._write_failed("delete_reading", e, "Failed to delete reading")

        if not deleted:
            return self._missing("delete_reading", reading_id, "Failed to delete reading")

        self._readings = [r for r in self._readings if r.id != reading_id]
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                AuditEventType.READING_DELETED,
                self._scope,
                READINGS,
                reading_id,
                "Reading deleted",
            )

        self._notifications.success("Reading deleted successfully!")
        return LedgerResult(
            status=ResultStatus.SUCCESS,
            message="Reading deleted",
            operation="delete_reading",
            completed_steps=["reading"],
        )
