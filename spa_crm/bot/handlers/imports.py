from __future__ import annotations

import logging

from aiogram import Router, html
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from spa_crm.bot.handlers.common import deny_unless_staff
from spa_crm.db.models import ImportJob, ImportJobStatus
from spa_crm.db.supabase import SupabaseClient

router = Router(name="imports")
logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    ImportJobStatus.PENDING: "⏳",
    ImportJobStatus.PROCESSING: "🔄",
    ImportJobStatus.IMPORTING: "🔄",
    ImportJobStatus.COMPLETED: "✅",
    ImportJobStatus.FAILED: "❌",
}

# Skip records listed in one /job reply
MAX_SKIPPED_SHOWN = 10


def format_job_line(job: ImportJob) -> str:
    icon = _STATUS_ICONS.get(job.status, "•")
    created = job.created_at.strftime("%d.%m.%Y %H:%M") if job.created_at else "?"
    return (
        f"{icon} {html.quote(job.file_name)} - {job.status.value} {job.progress}% "
        f"(✔ {job.success} / ✖ {job.failed} / ↷ {job.skipped}) {created}\n"
        f"    <code>{job.id}</code>"
    )


def format_job_details(job: ImportJob) -> str:
    lines = [
        f"<b>{html.quote(job.file_name)}</b>",
        f"Status: {job.status.value} ({job.progress}%)",
        f"Rows: {job.processed}/{job.total}",
        f"Imported: {job.success}, failed: {job.failed}, skipped: {job.skipped}",
    ]
    if job.message:
        lines.append(html.quote(job.message))
    if job.error:
        lines.append(f"Error: {html.quote(job.error)}")
    if job.skipped_rows:
        lines.append("")
        lines.append("<b>Skipped rows:</b>")
        for record in job.skipped_rows[:MAX_SKIPPED_SHOWN]:
            lines.append(f"  • row {record.row}: {html.quote(record.message)}")
        hidden = len(job.skipped_rows) - MAX_SKIPPED_SHOWN
        if hidden > 0:
            lines.append(f"  … and {hidden} more")
    return "\n".join(lines)


@router.message(Command("imports"))
async def cmd_imports(message: Message, store: SupabaseClient, is_staff: bool = False) -> None:
    """
    Show the most recent import jobs.
    """

    if await deny_unless_staff(message, is_staff):
        return

    try:
        jobs = await store.list_import_jobs(limit=10)
    except Exception as exc:
        logger.exception("Error loading import history: %s", exc)
        await message.answer("❌ Could not load import history.")
        return

    if not jobs:
        await message.answer("No imports yet.")
        return

    lines = ["<b>Recent imports:</b>", ""]
    lines.extend(format_job_line(job) for job in jobs)
    await message.answer("\n".join(lines))


@router.message(Command("job"))
async def cmd_job(
    message: Message,
    command: CommandObject,
    store: SupabaseClient,
    is_staff: bool = False,
) -> None:
    if await deny_unless_staff(message, is_staff):
        return

    job_id = (command.args or "").strip()
    if not job_id:
        await message.answer("Usage: /job &lt;id&gt;")
        return

    try:
        job = await store.get_import_job(job_id, include_data=False)
    except Exception as exc:
        logger.exception("Error loading import job %s: %s", job_id, exc)
        await message.answer("❌ Could not load the import job.")
        return

    if job is None:
        await message.answer("Import job not found.")
        return
    await message.answer(format_job_details(job))
