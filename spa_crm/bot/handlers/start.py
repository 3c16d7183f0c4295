from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

router = Router(name="start")

HELP_TEXT = """
<b>📋 Available commands:</b>

/birthdays [branch] - clients with a birthday today
/imports - recent spreadsheet imports
/job &lt;id&gt; - details of one import job
/help - this help
""".strip()


@router.message(CommandStart())
async def cmd_start(message: Message, is_staff: bool = False) -> None:
    """
    /start shows the chat id so it can be added to the reminder chats.
    """

    lines = [
        "👋 Hi! I send daily birthday reminders and import summaries.",
        "",
        f"Chat id: <code>{message.chat.id}</code>",
    ]
    if not is_staff:
        lines.append("This chat is not registered yet; add the id above to REMINDER_CHAT_IDS.")
    else:
        lines.append("This chat receives birthday reminders. Send /help for commands.")
    await message.answer("\n".join(lines))


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)
