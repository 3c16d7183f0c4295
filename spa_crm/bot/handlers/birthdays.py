from __future__ import annotations

import logging
from datetime import date

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from spa_crm.bot.handlers.common import deny_unless_staff
from spa_crm.bot.scheduler import build_birthday_message
from spa_crm.db.supabase import SupabaseClient

router = Router(name="birthdays")
logger = logging.getLogger(__name__)


@router.message(Command("birthdays"))
async def cmd_birthdays(
    message: Message,
    command: CommandObject,
    store: SupabaseClient,
    is_staff: bool = False,
) -> None:
    """
    List today's birthdays, optionally for one branch.
    """

    if await deny_unless_staff(message, is_staff):
        return

    branch = (command.args or "").strip() or None
    today = date.today()
    try:
        clients = await store.list_birthdays(today.month, today.day, branch)
    except Exception as exc:
        logger.exception("Error loading birthdays: %s", exc)
        await message.answer("❌ Could not load birthdays.")
        return

    text = build_birthday_message(clients, today)
    if text is None:
        suffix = f" in {branch}" if branch else ""
        await message.answer(f"No birthdays today{suffix}.")
        return
    await message.answer(text)
