"""
Supabase integration: data models and the async REST client.
"""

from .supabase import DuplicateRecordError, SupabaseClient, SupabaseError

__all__ = ["DuplicateRecordError", "SupabaseClient", "SupabaseError"]
