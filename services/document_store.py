"""
Document store interface and its Supabase implementation.

The import pipeline only needs equality lookups, inserts and updates by id,
plus a way to persist binary media. Anything implementing DocumentStore can
back an import run.
"""

import uuid
from dataclasses import dataclass
from typing import Any, NoReturn, Optional, Protocol

import structlog

from config import get_supabase_client, settings
from exceptions import StorePersistError, StoreWriteConflictError

logger = structlog.get_logger(__name__)

# Postgres unique_violation and serialization_failure
WRITE_CONFLICT_CODES = frozenset({"23505", "40001"})


@dataclass(frozen=True)
class MediaFile:
    """Downloaded binary ready to be stored."""
    name: str
    mimetype: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class DocumentStore(Protocol):
    """Operations the import pipeline consumes."""

    def create(self, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        ...

    def find(
        self,
        collection: str,
        where: dict[str, Any],
        locale: Optional[str] = None,
        limit: int = 1
    ) -> list[dict]:
        ...

    def update(self, id: Any, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        ...

    def create_media(
        self,
        collection: str,
        data: dict,
        file: MediaFile,
        locale: Optional[str] = None
    ) -> dict:
        ...


def _error_code(error: Exception) -> Optional[str]:
    code = getattr(error, "code", None)
    return str(code) if code is not None else None


class SupabaseDocumentStore:
    """
    DocumentStore over Supabase: one table per collection.

    Tables are single-locale; the locale argument is accepted and ignored.
    Media bytes go to a Storage bucket and the row keeps the storage path.
    """

    def __init__(
        self,
        client=None,
        bucket: Optional[str] = None,
        identity_field: Optional[str] = None
    ):
        self.db = client or get_supabase_client()
        self.bucket = bucket or settings.media_storage_bucket
        self.identity_field = identity_field or settings.identity_field

    def _raise(self, operation: str, collection: str, error: Exception) -> NoReturn:
        code = _error_code(error)
        logger.error(
            "document_store_operation_failed",
            operation=operation,
            collection=collection,
            error=str(error),
            error_code=code
        )
        if code in WRITE_CONFLICT_CODES:
            raise StoreWriteConflictError(str(error), details={"collection": collection}) from error
        raise StorePersistError(operation, getattr(error, "message", None) or str(error)) from error

    # ===================
    # READ OPERATIONS
    # ===================

    def find(
        self,
        collection: str,
        where: dict[str, Any],
        locale: Optional[str] = None,
        limit: int = 1
    ) -> list[dict]:
        logger.debug("finding_documents", collection=collection, where=where, limit=limit)

        try:
            query = self.db.table(collection).select("*")
            for column, value in where.items():
                query = query.eq(column, value)
            result = query.limit(limit).execute()
            return list(result.data or [])

        except Exception as e:
            self._raise("select", collection, e)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        try:
            result = self.db.table(collection).insert(data).execute()
        except Exception as e:
            self._raise("insert", collection, e)

        if not result.data:
            raise StorePersistError("insert", f"No document returned by {collection}")

        document = result.data[0]
        logger.info("document_created", collection=collection, id=document.get(self.identity_field))
        return document

    def update(self, id: Any, collection: str, data: dict, locale: Optional[str] = None) -> dict:
        try:
            result = self.db.table(collection).update(data).eq(self.identity_field, id).execute()
        except Exception as e:
            self._raise("update", collection, e)

        if not result.data:
            raise StorePersistError("update", f"Document {id} not found in {collection}")

        logger.info("document_updated", collection=collection, id=id)
        return result.data[0]

    def create_media(
        self,
        collection: str,
        data: dict,
        file: MediaFile,
        locale: Optional[str] = None
    ) -> dict:
        # Unique path to avoid collisions between same-named files
        unique_id = str(uuid.uuid4())[:8]
        safe_filename = file.name.replace(" ", "_")
        storage_path = f"{collection}/{unique_id}_{safe_filename}"

        logger.debug(
            "uploading_media_to_storage",
            storage_path=storage_path,
            size_bytes=file.size
        )

        try:
            self.db.storage.from_(self.bucket).upload(
                storage_path,
                file.data,
                file_options={"content-type": file.mimetype}
            )
        except Exception as e:
            self._raise("upload", collection, e)

        return self.create(
            collection,
            {
                **data,
                "filename": file.name,
                "mime_type": file.mimetype,
                "filesize": file.size,
                "storage_path": storage_path,
            },
            locale
        )


# Singleton instance for convenience
_document_store: Optional[SupabaseDocumentStore] = None


def get_document_store() -> SupabaseDocumentStore:
    """Get or create the Supabase-backed DocumentStore."""
    global _document_store
    if _document_store is None:
        _document_store = SupabaseDocumentStore()
    return _document_store
