from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from spa_crm.db.supabase import SupabaseClient


class StaffContextMiddleware(BaseMiddleware):
    """
    Middleware that attaches the store and the caller's staff flag to handler data.

    Staff chats are the ones configured to receive birthday reminders.
    Works for both Message and CallbackQuery events.
    """

    def __init__(self, store: SupabaseClient, staff_chat_ids: Iterable[int]) -> None:
        self._store = store
        self._staff_chat_ids = frozenset(staff_chat_ids)

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        chat_id: int | None = None
        if isinstance(event, Message):
            chat_id = event.chat.id
        elif isinstance(event, CallbackQuery) and event.message is not None:
            chat_id = event.message.chat.id

        data["store"] = self._store
        data["is_staff"] = chat_id is not None and chat_id in self._staff_chat_ids
        return await handler(event, data)
