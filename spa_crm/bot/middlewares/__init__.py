"""
Middlewares for the Telegram bot.

Currently includes:
- StaffContextMiddleware: injects the store and resolves whether the chat is staff.
"""

from .staff_context import StaffContextMiddleware

__all__ = ["StaffContextMiddleware"]
