"""
Application package for the spa/gym client-management backend.

This package contains:
- Shared configuration and utilities (`spa_crm.core`)
- Supabase integration and data models (`spa_crm.db`)
- Spreadsheet bulk-import pipeline (`spa_crm.imports`)
- FastAPI backend (`spa_crm.api`)
- Telegram birthday reminder bot (`spa_crm.bot`)
"""
