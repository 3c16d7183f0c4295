from __future__ import annotations

from aiogram.types import Message

NOT_STAFF_TEXT = (
    "This chat is not allowed to view client data. "
    "Ask an administrator to add it to REMINDER_CHAT_IDS (send /start to see the chat id)."
)


async def deny_unless_staff(message: Message, is_staff: bool) -> bool:
    """
    Reply with a refusal for non-staff chats; returns True when the caller must stop.
    """

    if is_staff:
        return False
    await message.answer(NOT_STAFF_TEXT)
    return True
