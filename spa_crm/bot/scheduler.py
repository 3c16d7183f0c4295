from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable

from aiogram import Bot, html
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from spa_crm.core import Settings
from spa_crm.core.validation import normalize_phone
from spa_crm.db.models import Client
from spa_crm.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def build_birthday_message(clients: Iterable[Client], today: date) -> str | None:
    """
    Format today's birthdays grouped by branch; None when there are none.
    """

    by_branch: dict[str, list[Client]] = defaultdict(list)
    for client in clients:
        by_branch[client.branch or "No branch"].append(client)
    if not by_branch:
        return None

    lines = [f"🎂 <b>Birthdays today</b> ({today.strftime('%d %B')})", ""]
    for branch in sorted(by_branch):
        lines.append(html.bold(html.quote(branch)))
        for client in sorted(by_branch[branch], key=lambda c: c.name.lower()):
            phone = normalize_phone(client.phone_number) or client.phone_number
            lines.append(f"  • {html.quote(client.name)} ({html.code(html.quote(phone))})")
        lines.append("")
    return "\n".join(lines).rstrip()


class BirthdayReminderScheduler:
    """
    APScheduler manager for birthday reminders.
    Sends one digest a day to every configured staff chat.
    """

    def __init__(self, bot: Bot, store: SupabaseClient, settings: Settings) -> None:
        self.bot = bot
        self.store = store
        self.settings = settings
        self.scheduler: AsyncIOScheduler | None = None

    def start(self) -> None:
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.send_daily_reminders,
            CronTrigger(hour=self.settings.reminder_hour, minute=0),
            id="daily_birthdays",
            name="Daily Birthday Reminders",
        )
        self.scheduler.start()
        logger.info(
            "Birthday reminder scheduler started (hour=%s, chats=%d)",
            self.settings.reminder_hour,
            len(self.settings.reminder_chat_ids),
        )

    def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown()
            logger.info("Birthday reminder scheduler stopped")

    async def send_daily_reminders(self) -> None:
        if not self.settings.reminder_chat_ids:
            logger.debug("No reminder chats configured")
            return

        try:
            text = await self.birthday_text(date.today())
        except Exception as exc:
            logger.exception("Error loading today's birthdays: %s", exc)
            return

        if text is None:
            # Silent - don't send messages for "no birthdays today"
            logger.debug("No birthdays today")
            return

        for chat_id in self.settings.reminder_chat_ids:
            try:
                await self.bot.send_message(chat_id=chat_id, text=text)
            except Exception as exc:
                logger.error("Failed to send birthday reminder to %s: %s", chat_id, exc)

    async def birthday_text(self, today: date, branch: str | None = None) -> str | None:
        clients = await self.store.list_birthdays(today.month, today.day, branch)
        return build_birthday_message(clients, today)
