from __future__ import annotations

import logging
from typing import Iterable

from spa_crm.db.models import Branch, ClientDraft, SkipReason, SkipRecord
from spa_crm.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)


class DuplicateFilter:
    """
    Accepts or skips normalized rows for one import batch.

    Checks run cheapest first: branch lookup, then the in-file seen set,
    then a store query. Phone numbers are compared as trimmed strings.
    """

    def __init__(self, store: SupabaseClient, branches: Iterable[Branch]) -> None:
        self._store = store
        # Branch names match case-insensitively and resolve to the stored spelling
        self._branches = {branch.name.strip().casefold(): branch.name.strip() for branch in branches}
        self._seen: set[tuple[str, str]] = set()

    async def check(self, draft: ClientDraft, row_number: int) -> ClientDraft | SkipRecord:
        branch = self._branches.get(draft.branch.strip().casefold())
        if branch is None:
            return SkipRecord(
                row=row_number,
                reason=SkipReason.UNKNOWN_BRANCH,
                message=f'Branch "{draft.branch}" does not exist',
                name=draft.name,
                phone_number=draft.phone_number,
                branch=draft.branch,
            )

        draft = draft.model_copy(update={"branch": branch})
        key = draft.dedupe_key
        if key in self._seen:
            return SkipRecord(
                row=row_number,
                reason=SkipReason.DUPLICATE_IN_FILE,
                message=f'Duplicate phone number "{draft.phone_number}" found in file (same branch)',
                name=draft.name,
                phone_number=draft.phone_number,
                branch=branch,
            )

        if await self._store.phone_exists(draft.phone_number, branch):
            logger.debug("Row %s: phone already stored for branch %s", row_number, branch)
            return SkipRecord(
                row=row_number,
                reason=SkipReason.ALREADY_EXISTS,
                message=f'Phone number "{draft.phone_number}" already exists in database (same branch)',
                name=draft.name,
                phone_number=draft.phone_number,
                branch=branch,
            )

        self._seen.add(key)
        return draft
