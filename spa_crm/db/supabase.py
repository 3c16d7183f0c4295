from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable
from urllib.parse import quote

import httpx
from pydantic_core import to_jsonable_python

from spa_crm.core import Settings, get_settings
from spa_crm.db.models import (
    AuthUser,
    Branch,
    Client,
    ClientDraft,
    ImportJob,
    ImportJobStatus,
)


BRANCHES_TABLE = "branches"
CLIENTS_TABLE = "clients"
IMPORT_JOBS_TABLE = "import_jobs"

# Columns returned for job listings; raw rows are only read by the processor.
_JOB_SUMMARY_COLUMNS = (
    "id,file_name,status,progress,total,processed,success,failed,skipped,"
    "default_branch,data_stored,skipped_rows,error,message,created_at,updated_at"
)

_UNIQUE_VIOLATION = "23505"


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class DuplicateRecordError(SupabaseError):
    """
    Raised when an insert violates a unique constraint.
    """


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseClient:
    """
    Async Supabase client for the REST, auth and storage APIs.

    Service role key is used, so RLS is bypassed; access is restricted in code.
    One instance is opened per process and closed on shutdown.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = str(self._settings.supabase_url).rstrip("/")
        service_headers = {
            "apikey": self._settings.supabase_service_key,
            "Authorization": f"Bearer {self._settings.supabase_service_key}",
            "Accept": "application/json",
        }
        self._rest = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers={**service_headers, "Content-Type": "application/json"},
            timeout=10.0,
            transport=transport,
        )
        self._auth = httpx.AsyncClient(
            base_url=f"{self._base_url}/auth/v1",
            headers={
                "apikey": self._settings.supabase_anon_key or self._settings.supabase_service_key,
                "Accept": "application/json",
            },
            timeout=10.0,
            transport=transport,
        )
        self._storage = httpx.AsyncClient(
            base_url=f"{self._base_url}/storage/v1",
            headers=service_headers,
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._rest.aclose()
        await self._auth.aclose()
        await self._storage.aclose()

    # ------------------------------------------------------------------
    # REST helpers
    # ------------------------------------------------------------------

    async def _select_rows(
        self,
        table: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._rest.get(f"/{table}", params={"select": "*", **params})
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST GET failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        return response.json()

    async def _get_single_row(
        self,
        table: str,
        params: dict[str, Any],
    ) -> dict[str, Any] | None:
        items = await self._select_rows(table, {**params, "limit": 1})
        if not items:
            return None
        return items[0]

    async def _insert_row(
        self,
        table: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._rest.post(
            f"/{table}",
            json=to_jsonable_python(payload),
            headers={"Prefer": "return=representation"},
        )
        if response.status_code == 409 or (
            response.status_code >= 400 and _UNIQUE_VIOLATION in response.text
        ):
            raise DuplicateRecordError(
                f"Duplicate record rejected by '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST INSERT failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        items: list[dict[str, Any]] = response.json()
        if not items:
            raise SupabaseError(f"Empty insert response for table '{table}'")
        return items[0]

    async def _patch_rows(
        self,
        table: str,
        params: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._rest.patch(
            f"/{table}",
            params=params,
            json=to_jsonable_python(payload),
            headers={"Prefer": "return=representation"},
        )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST PATCH failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        return response.json()

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def list_branches(self) -> list[Branch]:
        items = await self._select_rows(BRANCHES_TABLE, {"order": "name.asc"})
        return [Branch.model_validate(item) for item in items]

    async def create_branch(self, name: str) -> Branch:
        row = await self._insert_row(BRANCHES_TABLE, {"name": name.strip()})
        return Branch.model_validate(row)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    async def list_clients(self, branch: str | None = None) -> list[Client]:
        """
        Return all clients, newest first, optionally scoped to one branch.
        """

        params: dict[str, Any] = {"order": "created_at.desc"}
        if branch:
            params["branch"] = f"eq.{branch.strip()}"
        items = await self._select_rows(CLIENTS_TABLE, params)
        return [Client.model_validate(item) for item in items]

    async def search_clients(self, term: str, branch: str | None = None) -> list[Client]:
        """
        Case-insensitive search on name or phone number.
        """

        needle = term.strip().replace('"', "")
        params: dict[str, Any] = {
            "or": f'(name.ilike."*{needle}*",phone_number.ilike."*{needle}*")',
            "order": "name.asc",
        }
        if branch:
            params["branch"] = f"eq.{branch.strip()}"
        items = await self._select_rows(CLIENTS_TABLE, params)
        return [Client.model_validate(item) for item in items]

    async def list_birthdays(
        self,
        month: int,
        day: int,
        branch: str | None = None,
    ) -> list[Client]:
        params: dict[str, Any] = {
            "birth_month": f"eq.{month}",
            "birth_day": f"eq.{day}",
            "order": "name.asc",
        }
        if branch:
            params["branch"] = f"eq.{branch.strip()}"
        items = await self._select_rows(CLIENTS_TABLE, params)
        return [Client.model_validate(item) for item in items]

    async def get_client(self, client_id: str) -> Client | None:
        row = await self._get_single_row(CLIENTS_TABLE, {"id": f"eq.{client_id}"})
        if row is None:
            return None
        return Client.model_validate(row)

    async def create_client(self, draft: ClientDraft) -> Client:
        """
        Insert a client.

        The table carries a unique constraint on (phone_number, branch), so a
        concurrent duplicate raises DuplicateRecordError instead of writing twice.
        """

        now = _utcnow()
        payload = {
            **draft.model_dump(),
            "name": draft.name.strip(),
            "phone_number": draft.phone_number.strip(),
            "branch": draft.branch.strip(),
            "created_at": now,
            "updated_at": now,
        }
        row = await self._insert_row(CLIENTS_TABLE, payload)
        return Client.model_validate(row)

    async def update_client(self, client_id: str, **fields: Any) -> Client:
        if not fields:
            raise ValueError("At least one field must be provided to update")

        items = await self._patch_rows(
            CLIENTS_TABLE,
            {"id": f"eq.{client_id}"},
            {**fields, "updated_at": _utcnow()},
        )
        if not items:
            raise SupabaseError("Client not found", status_code=404)
        return Client.model_validate(items[0])

    async def delete_client(self, client_id: str) -> bool:
        response = await self._rest.delete(
            f"/{CLIENTS_TABLE}",
            params={"id": f"eq.{client_id}"},
            headers={"Prefer": "return=representation"},
        )
        if response.status_code >= 400:
            raise SupabaseError(
                "Failed to delete client",
                status_code=response.status_code,
                detail=response.text,
            )
        return bool(response.json())

    async def phone_exists(
        self,
        phone_number: str,
        branch: str | None = None,
        exclude_id: str | None = None,
    ) -> bool:
        """
        Check whether a client with this phone number exists (optionally in a branch).
        """

        params: dict[str, Any] = {"phone_number": f"eq.{phone_number.strip()}"}
        if branch:
            params["branch"] = f"eq.{branch.strip()}"
        if exclude_id:
            params["id"] = f"neq.{exclude_id}"
        return await self._get_single_row(CLIENTS_TABLE, params) is not None

    # ------------------------------------------------------------------
    # Import jobs
    # ------------------------------------------------------------------

    async def create_import_job(self, file_name: str, default_branch: str = "") -> ImportJob:
        now = _utcnow()
        row = await self._insert_row(
            IMPORT_JOBS_TABLE,
            {
                "file_name": file_name,
                "status": ImportJobStatus.PENDING.value,
                "default_branch": default_branch,
                "data_stored": False,
                "created_at": now,
                "updated_at": now,
            },
        )
        return ImportJob.model_validate(row)

    async def store_job_data(
        self,
        job_id: str,
        rows: list[dict[str, Any]],
        default_branch: str = "",
    ) -> ImportJob:
        items = await self._patch_rows(
            IMPORT_JOBS_TABLE,
            {"id": f"eq.{job_id}"},
            {
                "json_data": rows,
                "default_branch": default_branch,
                "data_stored": True,
                "total": len(rows),
                "updated_at": _utcnow(),
            },
        )
        if not items:
            raise SupabaseError("Import job not found", status_code=404)
        return ImportJob.model_validate(items[0])

    async def get_import_job(self, job_id: str, *, include_data: bool = True) -> ImportJob | None:
        params: dict[str, Any] = {"id": f"eq.{job_id}", "limit": 1}
        if not include_data:
            params["select"] = _JOB_SUMMARY_COLUMNS
        items = await self._select_rows(IMPORT_JOBS_TABLE, params)
        if not items:
            return None
        return ImportJob.model_validate(items[0])

    async def update_import_job(self, job_id: str, **fields: Any) -> None:
        items = await self._patch_rows(
            IMPORT_JOBS_TABLE,
            {"id": f"eq.{job_id}", "select": _JOB_SUMMARY_COLUMNS},
            {**fields, "updated_at": _utcnow()},
        )
        if not items:
            raise SupabaseError("Import job not found", status_code=404)

    async def claim_import_job(
        self,
        job_id: str,
        from_statuses: Iterable[ImportJobStatus],
        **fields: Any,
    ) -> ImportJob | None:
        """
        Move a job to PROCESSING only if it is still in one of `from_statuses`.

        Returns the claimed job, or None when another caller got there first.
        """

        allowed = ",".join(status.value for status in from_statuses)
        items = await self._patch_rows(
            IMPORT_JOBS_TABLE,
            {"id": f"eq.{job_id}", "status": f"in.({allowed})"},
            {**fields, "status": ImportJobStatus.PROCESSING.value, "updated_at": _utcnow()},
        )
        if not items:
            return None
        return ImportJob.model_validate(items[0])

    async def list_import_jobs(
        self,
        limit: int = 20,
        status: ImportJobStatus | None = None,
    ) -> list[ImportJob]:
        """
        Recent upload history, newest first.
        """

        params: dict[str, Any] = {
            "select": _JOB_SUMMARY_COLUMNS,
            "order": "created_at.desc",
            "limit": limit,
        }
        if status is not None:
            params["status"] = f"eq.{status.value}"
        items = await self._select_rows(IMPORT_JOBS_TABLE, params)
        return [ImportJob.model_validate(item) for item in items]

    # ------------------------------------------------------------------
    # Storage and identity
    # ------------------------------------------------------------------

    async def upload_document(
        self,
        path: str,
        content: bytes,
        content_type: str | None = None,
    ) -> str:
        """
        Upload a file to the documents bucket and return its public URL.
        """

        bucket = self._settings.storage_bucket
        object_path = quote(path)
        response = await self._storage.post(
            f"/object/{bucket}/{object_path}",
            content=content,
            headers={"Content-Type": content_type or "application/octet-stream"},
        )
        if response.status_code >= 400:
            raise SupabaseError(
                "Supabase storage upload failed",
                status_code=response.status_code,
                detail=response.text,
            )
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{object_path}"

    async def get_auth_user(self, access_token: str) -> AuthUser | None:
        """
        Resolve a user access token with Supabase Auth; None when it is not valid.
        """

        response = await self._auth.get(
            "/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise SupabaseError(
                "Supabase Auth user lookup failed",
                status_code=response.status_code,
                detail=response.text,
            )
        data: dict[str, Any] = response.json()
        if not data.get("id"):
            return None
        return AuthUser.model_validate(data)
