from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from spa_crm.api.errors import register_exception_handlers
from spa_crm.api.routers import branches, clients, documents, jobs, uploads
from spa_crm.core import Settings, get_settings
from spa_crm.core.logging import configure_logging
from spa_crm.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: SupabaseClient | None = None,
) -> FastAPI:
    """
    Build the API application.

    When no store is given, one Supabase client is opened for the app's
    lifetime and closed on shutdown.
    """

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned: SupabaseClient | None = None
        if app.state.store is None:
            owned = SupabaseClient(settings)
            app.state.store = owned
        logger.info(
            "API started in %s environment (background processing: %s)",
            settings.environment,
            settings.background_processing,
        )
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()
                app.state.store = None

    app = FastAPI(title="Spa CRM", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    register_exception_handlers(app)
    app.include_router(uploads.router)
    app.include_router(jobs.router)
    app.include_router(clients.router)
    app.include_router(branches.router)
    app.include_router(documents.router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def run() -> None:
    configure_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    run()
