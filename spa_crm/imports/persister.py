from __future__ import annotations

import logging
from typing import Sequence

import httpx

from spa_crm.db.models import ClientDraft, SkipReason, SkipRecord
from spa_crm.db.supabase import DuplicateRecordError, SupabaseClient
from spa_crm.imports.ledger import ImportCounters, JobLedger

logger = logging.getLogger(__name__)


class BatchPersister:
    """
    Writes accepted drafts one by one, in file order.

    A row that fails to write is counted as failed and the batch continues;
    only transport failures (store unreachable) escape and fail the job.
    """

    def __init__(self, store: SupabaseClient, ledger: JobLedger) -> None:
        self._store = store
        self._ledger = ledger

    async def persist(
        self,
        job_id: str,
        accepted: Sequence[tuple[int, ClientDraft]],
        counters: ImportCounters,
    ) -> ImportCounters:
        for row_number, draft in accepted:
            try:
                await self._store.create_client(draft)
            except DuplicateRecordError:
                # Another writer stored the same phone+branch after our check
                counters.skip(
                    SkipRecord(
                        row=row_number,
                        reason=SkipReason.ALREADY_EXISTS,
                        message=(
                            f'Phone number "{draft.phone_number}" already exists '
                            "in database (same branch)"
                        ),
                        name=draft.name,
                        phone_number=draft.phone_number,
                        branch=draft.branch,
                    )
                )
            except httpx.TransportError:
                raise
            except Exception as exc:
                logger.warning("Import job %s: row %s failed to write: %s", job_id, row_number, exc)
                counters.fail()
            else:
                counters.succeed()

            await self._ledger.record(job_id, counters)

        return counters
