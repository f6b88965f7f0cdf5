"""
Job record persistence backends.
"""
from harvester.config import Settings
from harvester.storage.base import JobStore
from harvester.storage.sql import SQLJobStore
from harvester.storage.supabase import SupabaseJobStore


async def create_store(settings: Settings) -> JobStore:
    """Build the store selected by `storage_backend`."""
    if settings.storage_backend == "supabase":
        return SupabaseJobStore(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.request_timeout,
        )

    store = SQLJobStore(settings.database_url)
    await store.create_tables()
    return store


__all__ = [
    "JobStore",
    "SQLJobStore",
    "SupabaseJobStore",
    "create_store",
]
