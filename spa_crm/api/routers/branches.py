from __future__ import annotations

from fastapi import APIRouter, Depends

from spa_crm.api.dependencies import get_store, require_user
from spa_crm.api.schemas import BranchOut
from spa_crm.db.supabase import SupabaseClient

router = APIRouter(prefix="/branches", tags=["branches"], dependencies=[Depends(require_user)])


@router.get("", response_model=list[BranchOut])
async def list_branches(store: SupabaseClient = Depends(get_store)) -> list[BranchOut]:
    return [BranchOut(id=branch.id, name=branch.name) for branch in await store.list_branches()]
