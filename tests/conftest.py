from __future__ import annotations

import io
import itertools
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import pytest
from openpyxl import Workbook

from spa_crm.core import Settings
from spa_crm.db.models import (
    AuthUser,
    Branch,
    Client,
    ClientDraft,
    ImportJob,
    ImportJobStatus,
)
from spa_crm.db.supabase import DuplicateRecordError, SupabaseError


class FakeStore:
    """
    In-memory stand-in for SupabaseClient with the same async surface.

    Enforces the (phone_number, branch) unique constraint like the real table.
    """

    def __init__(self, branches: Iterable[str] = ("Downtown", "Midtown")) -> None:
        self._ids = itertools.count(1)
        self.branches = [Branch(id=f"b{index}", name=name) for index, name in enumerate(branches, 1)]
        self.clients: dict[str, Client] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.job_updates: list[dict[str, Any]] = []
        self.documents: dict[str, bytes] = {}
        self.tokens: dict[str, AuthUser] = {}
        # phone numbers whose insert fails with a non-duplicate error
        self.broken_phones: set[str] = set()
        # phone numbers another writer stores right before our insert
        self.racing_phones: set[str] = set()
        self.fail_store_data = False
        self.closed = False

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    async def close(self) -> None:
        self.closed = True

    # Branches

    async def list_branches(self) -> list[Branch]:
        return sorted(self.branches, key=lambda branch: branch.name)

    async def create_branch(self, name: str) -> Branch:
        branch = Branch(id=self._next_id("b"), name=name.strip())
        self.branches.append(branch)
        return branch

    # Clients

    def add_client(self, name: str, phone_number: str, branch: str, month: int = 1, day: int = 1) -> Client:
        client = Client(
            id=self._next_id("c"),
            name=name,
            phone_number=phone_number,
            birth_month=month,
            birth_day=day,
            branch=branch,
        )
        self.clients[client.id] = client
        return client

    async def list_clients(self, branch: str | None = None) -> list[Client]:
        return [c for c in self.clients.values() if not branch or c.branch == branch]

    async def search_clients(self, term: str, branch: str | None = None) -> list[Client]:
        needle = term.strip().lower()
        return [
            c
            for c in await self.list_clients(branch)
            if needle in c.name.lower() or needle in c.phone_number.lower()
        ]

    async def list_birthdays(self, month: int, day: int, branch: str | None = None) -> list[Client]:
        return [
            c
            for c in await self.list_clients(branch)
            if c.birth_month == month and c.birth_day == day
        ]

    async def get_client(self, client_id: str) -> Client | None:
        return self.clients.get(client_id)

    async def create_client(self, draft: ClientDraft) -> Client:
        if draft.phone_number in self.broken_phones:
            raise SupabaseError("Supabase REST INSERT failed for 'clients'", status_code=400)
        if draft.phone_number in self.racing_phones:
            self.racing_phones.discard(draft.phone_number)
            self.add_client("Concurrent writer", draft.phone_number, draft.branch)
        if await self.phone_exists(draft.phone_number, draft.branch):
            raise DuplicateRecordError("Duplicate record rejected by 'clients'", status_code=409)
        client = Client(id=self._next_id("c"), **draft.model_dump())
        self.clients[client.id] = client
        return client

    async def update_client(self, client_id: str, **fields: Any) -> Client:
        current = self.clients.get(client_id)
        if current is None:
            raise SupabaseError("Client not found", status_code=404)
        updated = current.model_copy(update=fields)
        self.clients[client_id] = updated
        return updated

    async def delete_client(self, client_id: str) -> bool:
        return self.clients.pop(client_id, None) is not None

    async def phone_exists(
        self,
        phone_number: str,
        branch: str | None = None,
        exclude_id: str | None = None,
    ) -> bool:
        return any(
            c.phone_number == phone_number.strip()
            and (not branch or c.branch == branch.strip())
            and c.id != exclude_id
            for c in self.clients.values()
        )

    # Import jobs

    async def create_import_job(self, file_name: str, default_branch: str = "") -> ImportJob:
        job_id = self._next_id("job")
        now = datetime.now(timezone.utc)
        self.jobs[job_id] = {
            "id": job_id,
            "file_name": file_name,
            "status": ImportJobStatus.PENDING.value,
            "default_branch": default_branch,
            "data_stored": False,
            "created_at": now,
            "updated_at": now,
        }
        return ImportJob.model_validate(self.jobs[job_id])

    async def store_job_data(
        self,
        job_id: str,
        rows: list[dict[str, Any]],
        default_branch: str = "",
    ) -> ImportJob:
        if self.fail_store_data:
            raise SupabaseError("Supabase REST PATCH failed for 'import_jobs'", status_code=500)
        self.jobs[job_id].update(
            json_data=rows,
            default_branch=default_branch,
            data_stored=True,
            total=len(rows),
        )
        return ImportJob.model_validate(self.jobs[job_id])

    async def get_import_job(self, job_id: str, *, include_data: bool = True) -> ImportJob | None:
        row = self.jobs.get(job_id)
        if row is None:
            return None
        if not include_data:
            row = {key: value for key, value in row.items() if key != "json_data"}
        return ImportJob.model_validate(row)

    async def update_import_job(self, job_id: str, **fields: Any) -> None:
        if job_id not in self.jobs:
            raise SupabaseError("Import job not found", status_code=404)
        self.job_updates.append(dict(fields))
        self.jobs[job_id].update(fields)

    async def claim_import_job(self, job_id: str, from_statuses, **fields: Any) -> ImportJob | None:
        row = self.jobs.get(job_id)
        allowed = {status.value for status in from_statuses}
        if row is None or row["status"] not in allowed:
            return None
        row.update(fields, status=ImportJobStatus.PROCESSING.value)
        return ImportJob.model_validate(row)

    async def list_import_jobs(
        self,
        limit: int = 20,
        status: ImportJobStatus | None = None,
    ) -> list[ImportJob]:
        rows = [
            row for row in reversed(list(self.jobs.values()))
            if status is None or row["status"] == status.value
        ]
        return [await self.get_import_job(row["id"], include_data=False) for row in rows[:limit]]

    # Storage and identity

    async def upload_document(self, path: str, content: bytes, content_type: str | None = None) -> str:
        self.documents[path] = content
        return f"https://example.supabase.co/storage/v1/object/public/documents/{path}"

    async def get_auth_user(self, access_token: str) -> AuthUser | None:
        return self.tokens.get(access_token)


def _workbook_bytes(rows: list[list[Any]]) -> bytes:
    """
    Build an .xlsx file in memory; the first row is the header row.
    """

    workbook = Workbook()
    worksheet = workbook.active
    for row in rows:
        worksheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "supabase_url": "https://example.supabase.co",
        "supabase_service_key": "test-service-key",
        "require_auth": False,
        "job_data_retry_delay_seconds": 0,
        "progress_update_interval": 2,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    return _settings


@pytest.fixture()
def settings() -> Settings:
    return _settings()


@pytest.fixture()
def build_xlsx() -> Callable[[list[list[Any]]], bytes]:
    return _workbook_bytes
