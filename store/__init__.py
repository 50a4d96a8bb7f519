"""
Data store clients for the Bookzoi API.

This package provides:
- The query capability interface shared by all backends
- A PostgREST (Supabase) backend for production
- An in-memory backend for tests and local runs
"""

from .base import DataStore, NO_ROWS_CODE, Query, StoreError
from .memory import InMemoryStore
from .postgrest import PostgrestStore


def create_store(config) -> DataStore:
    """
    Build the data store selected by configuration.

    Args:
        config: API configuration

    Returns:
        A ready-to-use data store

    Raises:
        ValueError: If the PostgREST backend is selected without URL or key
    """
    if config.store_backend == "memory":
        return InMemoryStore()

    if not config.supabase_url or not config.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the postgrest store backend")

    return PostgrestStore(
        url=config.supabase_url,
        api_key=config.supabase_key,
        timeout=config.store_timeout,
    )


__all__ = [
    "DataStore",
    "InMemoryStore",
    "NO_ROWS_CODE",
    "PostgrestStore",
    "Query",
    "StoreError",
    "create_store",
]
