from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from spa_crm.bot.handlers import setup_routers
from spa_crm.bot.middlewares import StaffContextMiddleware
from spa_crm.bot.scheduler import BirthdayReminderScheduler
from spa_crm.core import get_settings
from spa_crm.core.logging import configure_logging
from spa_crm.db.supabase import SupabaseClient


async def _run_bot() -> None:
    settings = get_settings()
    logger = configure_logging(settings)

    if not settings.bot_token:
        raise RuntimeError("BOT_TOKEN is required to run the reminder bot")

    store = SupabaseClient(settings)
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()
    staff_context = StaffContextMiddleware(store, settings.reminder_chat_ids)
    dp.message.middleware(staff_context)
    dp.callback_query.middleware(staff_context)
    dp.include_router(setup_routers())

    logger.info("Starting bot in %s environment", settings.environment)

    scheduler = BirthdayReminderScheduler(bot, store, settings)
    scheduler.start()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        # Graceful shutdown
        scheduler.stop()
        await store.close()
        await bot.session.close()


def main() -> None:
    asyncio.run(_run_bot())


if __name__ == "__main__":
    main()
