"""
Client read and CRUD endpoints; queries are delegated to the store.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from spa_crm.api.dependencies import get_store, require_user
from spa_crm.api.schemas import (
    ClientCreate,
    ClientListResponse,
    ClientOut,
    ClientUpdate,
    CreatedResponse,
    DuplicateCheckResponse,
)
from spa_crm.db.models import ClientDraft
from spa_crm.db.supabase import DuplicateRecordError, SupabaseClient
from spa_crm.imports.normalizer import synthetic_birth_date, valid_birth_date

router = APIRouter(prefix="/clients", tags=["clients"], dependencies=[Depends(require_user)])


def _birth_fields(month: int, day: int) -> dict[str, Any]:
    birth = valid_birth_date(month, day)
    if birth is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date of birth: month {month}, day {day}",
        )
    return {
        "birth_month": birth.month,
        "birth_day": birth.day,
        "date_of_birth": synthetic_birth_date(birth, date.today()),
    }


async def _existing_branch(store: SupabaseClient, name: str) -> str:
    """
    Resolve a branch name case-insensitively to its stored spelling; 400 when unknown.
    """

    wanted = name.strip().casefold()
    for branch in await store.list_branches():
        if branch.name.strip().casefold() == wanted:
            return branch.name.strip()
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f'Branch "{name.strip()}" does not exist',
    )


def _duplicate_phone(phone_number: str, branch: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f'Phone number "{phone_number}" already exists in branch "{branch}"',
    )


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: str | None = Query(default=None),
    birthdays: str | None = Query(default=None),
    branch: str | None = Query(default=None),
    store: SupabaseClient = Depends(get_store),
) -> ClientListResponse:
    """
    All clients, a search result, or (with `birthdays=today`) today's birthdays.
    """

    if birthdays == "today":
        today = date.today()
        clients = await store.list_birthdays(today.month, today.day, branch)
    elif search and search.strip():
        clients = await store.search_clients(search, branch)
    else:
        clients = await store.list_clients(branch)
    return ClientListResponse(clients=[ClientOut.from_client(client) for client in clients])


@router.post("", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    store: SupabaseClient = Depends(get_store),
) -> CreatedResponse:
    branch = await _existing_branch(store, payload.branch)
    if await store.phone_exists(payload.phone_number, branch):
        raise _duplicate_phone(payload.phone_number, branch)

    draft = ClientDraft(
        name=payload.name.strip(),
        phone_number=payload.phone_number.strip(),
        branch=branch,
        **_birth_fields(payload.birth_month, payload.birth_day),
    )
    try:
        client = await store.create_client(draft)
    except DuplicateRecordError as exc:
        raise _duplicate_phone(draft.phone_number, draft.branch) from exc
    return CreatedResponse(id=client.id)


@router.get("/check-duplicate", response_model=DuplicateCheckResponse)
async def check_duplicate(
    phone_number: str | None = Query(default=None, alias="phoneNumber"),
    branch: str | None = Query(default=None),
    exclude_id: str | None = Query(default=None, alias="excludeId"),
    store: SupabaseClient = Depends(get_store),
) -> DuplicateCheckResponse:
    if not phone_number or not phone_number.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required")
    exists = await store.phone_exists(phone_number, branch, exclude_id)
    return DuplicateCheckResponse(exists=exists)


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(client_id: str, store: SupabaseClient = Depends(get_store)) -> ClientOut:
    client = await store.get_client(client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return ClientOut.from_client(client)


@router.patch("/{client_id}", response_model=ClientOut)
async def update_client(
    client_id: str,
    payload: ClientUpdate = Body(...),
    store: SupabaseClient = Depends(get_store),
) -> ClientOut:
    current = await store.get_client(client_id)
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")

    changes = payload.model_dump(exclude_none=True, exclude={"birth_month", "birth_day"})
    for key in ("name", "phone_number", "branch"):
        if key in changes:
            changes[key] = changes[key].strip()
    if "branch" in changes:
        changes["branch"] = await _existing_branch(store, changes["branch"])

    if (payload.birth_month is None) != (payload.birth_day is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="birthMonth and birthDay must be provided together",
        )
    if payload.birth_month is not None and payload.birth_day is not None:
        changes.update(_birth_fields(payload.birth_month, payload.birth_day))

    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    phone_number = changes.get("phone_number", current.phone_number)
    branch = changes.get("branch", current.branch)
    if ("phone_number" in changes or "branch" in changes) and await store.phone_exists(
        phone_number, branch, exclude_id=client_id
    ):
        raise _duplicate_phone(phone_number, branch)

    try:
        client = await store.update_client(client_id, **changes)
    except DuplicateRecordError as exc:
        raise _duplicate_phone(phone_number, branch) from exc
    return ClientOut.from_client(client)


@router.delete("/{client_id}")
async def delete_client(client_id: str, store: SupabaseClient = Depends(get_store)) -> dict[str, bool]:
    if not await store.delete_client(client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return {"success": True}
