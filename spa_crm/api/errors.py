from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from spa_crm.db.supabase import SupabaseError
from spa_crm.imports import ClientImportError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render every handled failure as `{"error": ...}` JSON.
    """

    @app.exception_handler(ClientImportError)
    async def _import_error_handler(request: Request, exc: ClientImportError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(SupabaseError)
    async def _store_error_handler(request: Request, exc: SupabaseError) -> JSONResponse:
        logger.error(
            "Store error on %s %s: %s (status=%s, detail=%s)",
            request.method,
            request.url.path,
            exc,
            exc.status_code,
            exc.detail,
        )
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
