"""
Shared FastAPI dependencies: settings, store, services and auth.

The store is opened once in the app lifespan and handed to handlers through
these dependencies; nothing reads it from module globals.
"""

from __future__ import annotations

from fastapi import Depends, File, Header, HTTPException, Request, UploadFile, status

from spa_crm.core import Settings
from spa_crm.db.models import AuthUser
from spa_crm.db.supabase import SupabaseClient
from spa_crm.imports import ImportService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SupabaseClient:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store is not initialised",
        )
    return store


def get_import_service(
    store: SupabaseClient = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> ImportService:
    return ImportService(store, settings)


async def require_user(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    store: SupabaseClient = Depends(get_store),
) -> AuthUser | None:
    """
    Verify the bearer token with the identity provider.

    Returns None when auth is disabled by configuration.
    """

    if not settings.require_auth:
        return None

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = await store.get_auth_user(token.strip())
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def get_spreadsheet_upload(file: UploadFile | None = File(default=None)) -> UploadFile:
    if file is None or not (file.filename or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    return file
