"""
Membership document upload (invoices, proofs of payment).
"""

from __future__ import annotations

import time
from pathlib import PurePath

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from spa_crm.api.dependencies import get_app_settings, get_store, require_user
from spa_crm.api.schemas import DocumentUploadResponse
from spa_crm.core import Settings
from spa_crm.db.supabase import SupabaseClient

router = APIRouter(tags=["documents"], dependencies=[Depends(require_user)])

DOCUMENT_TYPES = ("invoice", "pop")


@router.post("/upload-doc", response_model=DocumentUploadResponse)
async def upload_document(
    file: UploadFile | None = File(default=None),
    document_type: str | None = Form(default=None, alias="type"),
    client_id: str | None = Form(default=None, alias="clientId"),
    store: SupabaseClient = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> DocumentUploadResponse:
    """
    Store a document under memberships/{clientId}/{type}/ and return its URL.
    """

    if file is None or not document_type or not client_id or not (file.filename or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    if document_type not in DOCUMENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown document type. Expected one of: {', '.join(DOCUMENT_TYPES)}",
        )

    try:
        content = await file.read()
    finally:
        await file.close()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size exceeds limit of {settings.max_upload_mb}MB",
        )

    name = PurePath(file.filename or "").name
    path = f"memberships/{client_id.strip()}/{document_type}/{int(time.time() * 1000)}_{name}"
    url = await store.upload_document(path, content, file.content_type)
    return DocumentUploadResponse(url=url, name=name, type=file.content_type)
