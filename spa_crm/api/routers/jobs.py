"""
Import job trigger and progress endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from spa_crm.api.dependencies import get_import_service, get_store, require_user
from spa_crm.api.schemas import ImportJobOut, ProcessResponse
from spa_crm.db.models import ImportJobStatus
from spa_crm.db.supabase import SupabaseClient
from spa_crm.imports import ImportInputError, ImportService

router = APIRouter(prefix="/jobs", tags=["imports"], dependencies=[Depends(require_user)])


@router.post("/process", response_model=ProcessResponse)
async def process_job(
    payload: dict[str, Any] | None = Body(default=None),
    service: ImportService = Depends(get_import_service),
) -> ProcessResponse:
    """
    Start or continue processing of an uploaded job.

    Safe to call repeatedly: a job already processing or completed is only reported.
    """

    payload = payload or {}
    job_id = str(payload.get("jobId") or payload.get("job_id") or "").strip()
    if not job_id:
        raise ImportInputError("Job ID is required")

    result = await service.process(job_id)
    return ProcessResponse(success=result.success, message=result.message, status=result.status)


@router.get("", response_model=list[ImportJobOut])
async def list_jobs(
    status: ImportJobStatus | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    store: SupabaseClient = Depends(get_store),
) -> list[ImportJobOut]:
    """
    Upload history, newest first.
    """

    jobs = await store.list_import_jobs(limit=limit, status=status)
    return [ImportJobOut.from_job(job) for job in jobs]


@router.get("/{job_id}", response_model=ImportJobOut)
async def get_job(
    job_id: str,
    service: ImportService = Depends(get_import_service),
) -> ImportJobOut:
    job = await service.ledger.get(job_id, include_data=False)
    return ImportJobOut.from_job(job)
