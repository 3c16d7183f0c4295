"""
Spreadsheet upload endpoint: the fast half of a bulk import.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Form, UploadFile

from spa_crm.api.dependencies import (
    get_app_settings,
    get_import_service,
    get_spreadsheet_upload,
    require_user,
)
from spa_crm.api.schemas import UploadResponse
from spa_crm.core import Settings
from spa_crm.imports import ImportService

router = APIRouter(tags=["imports"], dependencies=[Depends(require_user)])
logger = logging.getLogger(__name__)


@router.post("/upload", response_model=UploadResponse)
async def upload_spreadsheet(
    background_tasks: BackgroundTasks,
    file: UploadFile = Depends(get_spreadsheet_upload),
    default_branch: str = Form(default="", alias="defaultBranch"),
    service: ImportService = Depends(get_import_service),
    settings: Settings = Depends(get_app_settings),
) -> UploadResponse:
    """
    Parse the file, create an import job and store its rows.

    Returns as soon as the rows are stored; processing is started with
    POST /jobs/process unless the host runs background work.
    """

    file_name = file.filename or ""
    try:
        service.validate_upload(file_name, file.size or 0)
        content = await file.read()
    finally:
        await file.close()

    result = await service.upload(file_name, content, default_branch)

    if settings.background_processing:
        background_tasks.add_task(service.process_in_background, result.job_id)
        message = "File uploaded successfully. Processing started in background."
    else:
        message = "File uploaded successfully. Start processing with /jobs/process."

    return UploadResponse(job_id=result.job_id, total_rows=result.total_rows, message=message)
