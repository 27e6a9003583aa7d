"""
Supabase connection for the document store.

One cached client serves table reads/writes and media uploads to Storage.
"""

from functools import lru_cache

from supabase import Client, create_client
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Supabase is unconfigured or unreachable."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Raises:
        ConnectionError: If credentials are missing or the client cannot be built
    """
    if not settings.supabase_configured:
        raise ConnectionError("SUPABASE_URL and SUPABASE_KEY must be set")

    # Partial URL only
    logger.info("supabase_client_creating", url=settings.supabase_url[:30] + "...")
    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error("supabase_client_failed", error=str(e), error_type=type(e).__name__)
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_client_ready", media_bucket=settings.media_storage_bucket)
    return client


def check_connection() -> dict:
    """
    Document store health.

    Lists Storage buckets, which needs valid credentials, and reports
    whether the media bucket exists.
    """
    try:
        buckets = get_supabase_client().storage.list_buckets() or []
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    names = {
        bucket.get("name") if isinstance(bucket, dict) else getattr(bucket, "name", bucket)
        for bucket in buckets
    }
    return {
        "status": "healthy",
        "buckets_count": len(buckets),
        "media_bucket": settings.media_storage_bucket in names
    }
