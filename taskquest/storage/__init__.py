"""
Data storage layer.

Services read and write through the StorageBackend contract
(query / rpc / upsert / insert / update). Two backends implement it:

DuckDB: Local file, default for development and tests. Stored procedures
        are served by Python implementations.
Supabase: PostgREST over httpx, used in production.
"""

from functools import lru_cache

from taskquest.config import get_settings

from .base import RecordNotFoundError, StorageBackend, StorageError
from .duckdb_storage import DuckDBStorage
from .supabase_storage import SupabaseStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns the implementation selected by ``STORAGE_BACKEND``.

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    if settings.storage_backend == "supabase":
        return SupabaseStorage(
            rest_url=settings.supabase_rest_url,
            api_key=settings.supabase_key,
            timeout=settings.http_timeout_seconds,
        )
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "DuckDBStorage",
    "RecordNotFoundError",
    "StorageBackend",
    "StorageError",
    "SupabaseStorage",
    "get_storage",
]
