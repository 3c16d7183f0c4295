from aiogram import Router

from . import birthdays, imports, start


def setup_routers() -> Router:
    """
    Aggregate and return root router for the bot.
    """

    router = Router(name="root")
    router.include_router(start.router)
    router.include_router(birthdays.router)
    router.include_router(imports.router)
    return router
