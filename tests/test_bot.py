from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from aiogram.types import Chat, Message

from spa_crm.bot.handlers.imports import MAX_SKIPPED_SHOWN, format_job_details, format_job_line
from spa_crm.bot.middlewares import StaffContextMiddleware
from spa_crm.bot.scheduler import BirthdayReminderScheduler, build_birthday_message
from spa_crm.db.models import Client, ImportJob, ImportJobStatus, SkipReason, SkipRecord


class FakeBot:
    def __init__(self, failing_chats: set[int] | None = None) -> None:
        self.sent: list[tuple[int, str]] = []
        self.failing_chats = failing_chats or set()

    async def send_message(self, chat_id: int, text: str) -> None:
        if chat_id in self.failing_chats:
            raise RuntimeError("chat not found")
        self.sent.append((chat_id, text))


def _client(name: str, phone: str, branch: str) -> Client:
    return Client(id=name.lower(), name=name, phone_number=phone, birth_month=3, birth_day=15, branch=branch)


def test_birthday_message_groups_by_branch_and_escapes_html():
    message = build_birthday_message(
        [
            _client("Zoe", "0711 000 003", "Midtown"),
            _client("Ann <VIP>", "+254711000001", "Downtown"),
            _client("bob", "0711000002", "Downtown"),
        ],
        date(2025, 3, 15),
    )

    assert message is not None
    lines = message.splitlines()
    assert lines[0] == "🎂 <b>Birthdays today</b> (15 March)"
    assert lines[2] == "<b>Downtown</b>"
    assert lines[3] == "  • Ann &lt;VIP&gt; (<code>+254711000001</code>)"
    assert lines[4].startswith("  • bob")
    assert "<b>Midtown</b>" in lines
    assert "  • Zoe (<code>0711000003</code>)" in lines


def test_birthday_message_is_none_without_birthdays():
    assert build_birthday_message([], date(2025, 3, 15)) is None


def test_daily_reminders_go_to_every_configured_chat(store, make_settings):
    today = date.today()
    store.add_client("Ann", "0711000001", "Downtown", today.month, today.day)
    bot = FakeBot(failing_chats={2})
    scheduler = BirthdayReminderScheduler(bot, store, make_settings(reminder_chat_ids=[1, 2, 3]))

    asyncio.run(scheduler.send_daily_reminders())

    assert [chat_id for chat_id, _ in bot.sent] == [1, 3]
    assert "Ann" in bot.sent[0][1]


def test_daily_reminders_stay_silent_without_birthdays(store, make_settings):
    bot = FakeBot()
    scheduler = BirthdayReminderScheduler(bot, store, make_settings(reminder_chat_ids=[1]))

    asyncio.run(scheduler.send_daily_reminders())

    assert bot.sent == []


def test_staff_context_middleware_injects_store_and_staff_flag(store):
    middleware = StaffContextMiddleware(store, [42])
    captured: list[dict] = []

    async def handler(event, data):
        captured.append(dict(data))

    def message(chat_id: int) -> Message:
        return Message(
            message_id=1,
            date=datetime.now(timezone.utc),
            chat=Chat(id=chat_id, type="private"),
        )

    async def run():
        await middleware(handler, message(42), {})
        await middleware(handler, message(7), {})

    asyncio.run(run())

    assert captured[0]["store"] is store
    assert captured[0]["is_staff"] is True
    assert captured[1]["is_staff"] is False


def test_job_formatting():
    job = ImportJob(
        id="job-1",
        file_name="clients <march>.xlsx",
        status=ImportJobStatus.COMPLETED,
        progress=100,
        total=13,
        processed=13,
        success=1,
        skipped=12,
        message="Successfully imported 1 client(s). 12 row(s) skipped.",
        skipped_rows=[
            SkipRecord(row=row, reason=SkipReason.MISSING_BRANCH, message="Missing branch.")
            for row in range(2, 14)
        ],
        created_at=datetime(2025, 3, 15, 9, 30),
    )

    line = format_job_line(job)
    details = format_job_details(job)

    assert "clients &lt;march&gt;.xlsx" in line
    assert "15.03.2025 09:30" in line
    assert "<code>job-1</code>" in line
    assert details.count("• row") == MAX_SKIPPED_SHOWN
    assert "… and 2 more" in details
