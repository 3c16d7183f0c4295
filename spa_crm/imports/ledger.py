from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from spa_crm.db.models import ImportJob, ImportJobStatus, SkipRecord
from spa_crm.db.supabase import SupabaseClient
from spa_crm.imports.errors import JobDataMissingError, JobNotFoundError

logger = logging.getLogger(__name__)

# Statuses a trigger may move to PROCESSING; anything else is reported as-is.
CLAIMABLE_STATUSES = (ImportJobStatus.PENDING, ImportJobStatus.FAILED)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded re-read of a job whose rows have not been stored yet.
    """

    max_attempts: int = 2
    delay_seconds: float = 1.0


@dataclass
class ImportCounters:
    total: int
    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    skipped_rows: list[SkipRecord] = field(default_factory=list)

    @property
    def progress(self) -> int:
        if self.total <= 0:
            return 100
        return min(100, self.processed * 100 // self.total)

    def skip(self, record: SkipRecord) -> None:
        self.skipped += 1
        self.processed += 1
        self.skipped_rows.append(record)

    def succeed(self) -> None:
        self.success += 1
        self.processed += 1

    def fail(self) -> None:
        self.failed += 1
        self.processed += 1

    def summary(self) -> str:
        message = f"Successfully imported {self.success} client(s)."
        if self.failed:
            message += f" {self.failed} failed."
        if self.skipped:
            message += f" {self.skipped} row(s) skipped."
        return message

    def as_fields(self, *, include_skips: bool = True) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "total": self.total,
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "progress": self.progress,
        }
        if include_skips:
            fields["skipped_rows"] = [record.model_dump(mode="json") for record in self.skipped_rows]
        return fields


class JobLedger:
    """
    Owns every write to an import job document.

    Counter updates are flushed every `update_interval` processed rows;
    `complete` always writes the exact final numbers.
    """

    def __init__(
        self,
        store: SupabaseClient,
        *,
        update_interval: int = 10,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._update_interval = max(1, update_interval)
        self._sleep = sleep
        self._flushed: dict[str, int] = {}

    async def create(self, file_name: str, default_branch: str = "") -> ImportJob:
        job = await self._store.create_import_job(file_name, default_branch)
        logger.info("Import job %s created for %s", job.id, file_name)
        return job

    async def store_data(
        self,
        job_id: str,
        rows: list[dict[str, Any]],
        default_branch: str = "",
    ) -> ImportJob:
        job = await self._store.store_job_data(job_id, rows, default_branch)
        logger.info("Import job %s: %d row(s) stored", job_id, len(rows))
        return job

    async def get(self, job_id: str, *, include_data: bool = True) -> ImportJob:
        job = await self._store.get_import_job(job_id, include_data=include_data)
        if job is None:
            raise JobNotFoundError("Job not found")
        return job

    async def wait_for_data(self, job: ImportJob, policy: RetryPolicy) -> ImportJob:
        """
        Return the job once its rows are stored, re-reading it per `policy`.
        """

        attempt = 1
        while not (job.data_stored and job.json_data):
            if attempt >= policy.max_attempts:
                raise JobDataMissingError("No data found in job. Please re-upload the file.")
            logger.info(
                "Import job %s has no stored data yet, retrying in %.1fs",
                job.id,
                policy.delay_seconds,
            )
            await self._sleep(policy.delay_seconds)
            attempt += 1
            job = await self.get(job.id)
        return job

    async def claim(self, job: ImportJob) -> ImportJob | None:
        """
        Atomically move a pending or failed job to PROCESSING with zeroed counters.
        """

        counters = ImportCounters(total=len(job.json_data or []))
        claimed = await self._store.claim_import_job(
            job.id,
            CLAIMABLE_STATUSES,
            **counters.as_fields(),
            error=None,
            message="Validating rows",
        )
        if claimed is not None:
            self._flushed[job.id] = 0
            logger.info("Import job %s claimed for processing", job.id)
        return claimed

    async def record(self, job_id: str, counters: ImportCounters) -> None:
        last = self._flushed.get(job_id, 0)
        if counters.processed - last < self._update_interval:
            return
        # Skip records are written on phase changes only; flushes stay constant-size
        await self._store.update_import_job(job_id, **counters.as_fields(include_skips=False))
        self._flushed[job_id] = counters.processed

    async def mark_importing(self, job_id: str, counters: ImportCounters) -> None:
        await self._store.update_import_job(
            job_id,
            **counters.as_fields(),
            status=ImportJobStatus.IMPORTING.value,
            message="Writing clients",
        )
        self._flushed[job_id] = counters.processed

    async def complete(self, job_id: str, counters: ImportCounters) -> str:
        message = counters.summary()
        await self._store.update_import_job(
            job_id,
            **counters.as_fields(),
            status=ImportJobStatus.COMPLETED.value,
            message=message,
        )
        self._flushed.pop(job_id, None)
        logger.info("Import job %s completed: %s", job_id, message)
        return message

    async def fail(
        self,
        job_id: str,
        error: str,
        counters: ImportCounters | None = None,
    ) -> None:
        self._flushed.pop(job_id, None)
        fields = counters.as_fields() if counters is not None else {}
        await self._store.update_import_job(
            job_id,
            **fields,
            status=ImportJobStatus.FAILED.value,
            error=error,
            message="Import failed",
        )
        logger.info("Import job %s marked failed: %s", job_id, error)
