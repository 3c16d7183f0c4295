"""
Bulk client import: upload a spreadsheet, then process it as a job.

Upload is the fast path: parse, create the job, store the rows, return the
job id. Processing is the slow path, started by a separate trigger call (or
in the background when the host supports it) and safe to call repeatedly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Awaitable, Callable

from spa_crm.core import Settings
from spa_crm.db.models import ClientDraft, ImportJobStatus, SkipRecord
from spa_crm.db.supabase import SupabaseClient
from spa_crm.imports.errors import (
    ClientImportError,
    ImportInputError,
    ImportProcessingError,
    ImportTimeoutError,
    UploadTooLargeError,
)
from spa_crm.imports.filters import DuplicateFilter
from spa_crm.imports.ledger import ImportCounters, JobLedger, RetryPolicy
from spa_crm.imports.normalizer import RowNormalizer
from spa_crm.imports.parser import parse_spreadsheet, serialize_row
from spa_crm.imports.persister import BatchPersister

logger = logging.getLogger(__name__)

# openpyxl reads OOXML workbooks only; legacy BIFF .xls files must be converted first
ALLOWED_EXTENSIONS = (".xlsx",)

# First data row is spreadsheet row 2 (row 1 holds the headers)
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class UploadResult:
    job_id: str
    total_rows: int


@dataclass(frozen=True)
class ProcessResult:
    success: bool
    message: str
    status: ImportJobStatus


class ImportService:
    def __init__(
        self,
        store: SupabaseClient,
        settings: Settings,
        *,
        normalizer: RowNormalizer | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._settings = settings
        self._normalizer = normalizer or RowNormalizer()
        self._ledger = JobLedger(
            store,
            update_interval=settings.progress_update_interval,
            sleep=sleep,
        )
        self._persister = BatchPersister(store, self._ledger)
        self._retry = RetryPolicy(
            max_attempts=settings.job_data_retry_attempts,
            delay_seconds=settings.job_data_retry_delay_seconds,
        )

    @property
    def ledger(self) -> JobLedger:
        return self._ledger

    def validate_upload(self, file_name: str, size: int) -> None:
        if PurePath(file_name).suffix.lower() not in ALLOWED_EXTENSIONS:
            raise ImportInputError(
                "Invalid file type. Please upload an .xlsx file "
                "(legacy .xls workbooks must be saved as .xlsx first)"
            )

        max_bytes = self._settings.max_upload_bytes
        if size > max_bytes:
            raise UploadTooLargeError(
                f"File size exceeds limit. Maximum size is {max_bytes / (1024 * 1024):.0f}MB. "
                f"Your file is {size / (1024 * 1024):.2f}MB."
            )

    async def upload(
        self,
        file_name: str,
        content: bytes,
        default_branch: str = "",
    ) -> UploadResult:
        """
        Parse the spreadsheet and durably store its rows against a new job.
        """

        self.validate_upload(file_name, len(content))
        rows = [serialize_row(row) for row in parse_spreadsheet(content)]
        default_branch = default_branch.strip()

        try:
            job_id = await asyncio.wait_for(
                self._create_job(file_name, rows, default_branch),
                timeout=self._settings.upload_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ImportTimeoutError("Timed out while storing the uploaded file") from exc

        return UploadResult(job_id=job_id, total_rows=len(rows))

    async def _create_job(
        self,
        file_name: str,
        rows: list[dict[str, Any]],
        default_branch: str,
    ) -> str:
        try:
            job = await self._ledger.create(file_name, default_branch)
        except Exception as exc:
            logger.exception("Failed to create import job for %s", file_name)
            raise ImportProcessingError(f"Failed to create import job: {exc}") from exc

        try:
            await self._ledger.store_data(job.id, rows, default_branch)
        except Exception as exc:
            logger.exception("Failed to store data for import job %s", job.id)
            await self._fail_quietly(job.id, f"Failed to store job data: {exc}")
            raise ImportProcessingError(f"Failed to store job data: {exc}") from exc
        return job.id

    async def process(self, job_id: str) -> ProcessResult:
        """
        Run a stored job to completion.

        Jobs already processing or completed are reported, never restarted.
        """

        job = await self._ledger.get(job_id)

        if job.status in (ImportJobStatus.PROCESSING, ImportJobStatus.IMPORTING):
            return ProcessResult(True, "Job is already being processed", job.status)
        if job.status == ImportJobStatus.COMPLETED:
            return ProcessResult(True, "Job is already completed", job.status)

        job = await self._ledger.wait_for_data(job, self._retry)

        claimed = await self._ledger.claim(job)
        if claimed is None:
            # Lost the race to a concurrent trigger
            current = await self._ledger.get(job_id, include_data=False)
            return ProcessResult(True, "Job is already being processed", current.status)

        rows = claimed.json_data or []
        counters = ImportCounters(total=len(rows))
        timeout = self._settings.process_timeout_seconds
        try:
            message = await asyncio.wait_for(
                self._run(job_id, rows, claimed.default_branch, counters),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            error = (
                f"Processing timed out after {timeout:g}s; "
                f"{counters.processed} of {counters.total} row(s) handled"
            )
            logger.error("Import job %s: %s", job_id, error)
            await self._fail_quietly(job_id, error, counters)
            raise ImportTimeoutError(error) from exc
        except Exception as exc:
            logger.exception("Import job %s failed", job_id)
            error = str(exc) or exc.__class__.__name__
            await self._fail_quietly(job_id, error, counters)
            raise ImportProcessingError(f"Job processing failed: {error}") from exc

        return ProcessResult(True, message, ImportJobStatus.COMPLETED)

    async def process_in_background(self, job_id: str) -> None:
        try:
            await self.process(job_id)
        except ClientImportError as exc:
            logger.warning("Background processing of job %s ended with error: %s", job_id, exc)

    async def _run(
        self,
        job_id: str,
        rows: list[dict[str, Any]],
        default_branch: str,
        counters: ImportCounters,
    ) -> str:
        duplicate_filter = DuplicateFilter(self._store, await self._store.list_branches())

        accepted: list[tuple[int, ClientDraft]] = []
        for row_number, row in enumerate(rows, start=FIRST_DATA_ROW):
            outcome = self._normalizer.normalize(row, row_number, default_branch)
            if isinstance(outcome, ClientDraft):
                outcome = await duplicate_filter.check(outcome, row_number)

            if isinstance(outcome, SkipRecord):
                counters.skip(outcome)
                await self._ledger.record(job_id, counters)
            else:
                accepted.append((row_number, outcome))

        await self._ledger.mark_importing(job_id, counters)
        await self._persister.persist(job_id, accepted, counters)
        return await self._ledger.complete(job_id, counters)

    async def _fail_quietly(
        self,
        job_id: str,
        error: str,
        counters: ImportCounters | None = None,
    ) -> None:
        try:
            await self._ledger.fail(job_id, error, counters)
        except Exception:
            logger.exception("Failed to mark import job %s as failed", job_id)
