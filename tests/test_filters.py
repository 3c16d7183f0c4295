from __future__ import annotations

import asyncio
from datetime import date

from spa_crm.db.models import ClientDraft, SkipReason, SkipRecord
from spa_crm.imports.filters import DuplicateFilter


def _draft(phone: str = "0711000001", branch: str = "Downtown", name: str = "Ann") -> ClientDraft:
    return ClientDraft(
        name=name,
        phone_number=phone,
        birth_month=3,
        birth_day=15,
        date_of_birth=date(2025, 3, 15),
        branch=branch,
    )


def _check_all(store, drafts: list[ClientDraft]) -> list[ClientDraft | SkipRecord]:
    async def run() -> list[ClientDraft | SkipRecord]:
        duplicate_filter = DuplicateFilter(store, await store.list_branches())
        return [await duplicate_filter.check(draft, index) for index, draft in enumerate(drafts, start=2)]

    return asyncio.run(run())


def test_unknown_branch_is_skipped_with_branch_name(store):
    (outcome,) = _check_all(store, [_draft(branch="Uptown")])

    assert isinstance(outcome, SkipRecord)
    assert outcome.reason == SkipReason.UNKNOWN_BRANCH
    assert "Uptown" in outcome.message


def test_branch_match_is_case_insensitive_and_canonicalised(store):
    (outcome,) = _check_all(store, [_draft(branch=" downtown ")])

    assert isinstance(outcome, ClientDraft)
    assert outcome.branch == "Downtown"


def test_second_row_with_same_phone_and_branch_is_in_file_duplicate(store):
    first, second = _check_all(store, [_draft(name="Ann"), _draft(name="Anne")])

    assert isinstance(first, ClientDraft)
    assert isinstance(second, SkipRecord)
    assert second.reason == SkipReason.DUPLICATE_IN_FILE
    assert second.row == 3


def test_same_phone_in_other_branch_is_accepted(store):
    first, second = _check_all(store, [_draft(branch="Downtown"), _draft(branch="Midtown")])

    assert isinstance(first, ClientDraft)
    assert isinstance(second, ClientDraft)


def test_phone_already_stored_in_branch_is_skipped(store):
    store.add_client("Existing", "0711000001", "Downtown")

    (outcome,) = _check_all(store, [_draft()])

    assert isinstance(outcome, SkipRecord)
    assert outcome.reason == SkipReason.ALREADY_EXISTS


def test_phone_stored_in_other_branch_does_not_block(store):
    store.add_client("Existing", "0711000001", "Midtown")

    (outcome,) = _check_all(store, [_draft(branch="Downtown")])

    assert isinstance(outcome, ClientDraft)
