"""
Telegram bot for staff: daily birthday reminders and import status.
"""
