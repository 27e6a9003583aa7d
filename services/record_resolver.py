"""
Record resolver: decides and performs the write for one mapped record.

Business rules:
- create → identity stripped, store assigns it
- update → compare field required; match found → merge + update, else not found
- upsert → match found → merge + update; otherwise create keeping any caller id
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from exceptions import (
    AppError,
    MissingCompareFieldError,
    RecordNotFoundError,
    StorePersistError,
)
from models.imports import ImportMode, RecordAction
from services.document_store import DocumentStore

logger = structlog.get_logger(__name__)


@dataclass
class Resolution:
    """Result of apply() for logging/aggregation."""
    action: RecordAction
    id: Any


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


class RecordResolver:
    """
    Writes mapped records into one collection.

    Merging is shallow: the existing document is copied and the mapped
    values overwrite its top-level keys.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        identity_field: str = "id",
        log=None
    ):
        self.store = store
        self.collection = collection
        self.identity_field = identity_field
        self.log = log or logger

    def apply(
        self,
        record: dict[str, Any],
        mode: ImportMode,
        compare_field: Optional[str] = None,
        locale: Optional[str] = None
    ) -> Resolution:
        """
        Persist one record according to the import mode.

        Raises:
            MissingCompareFieldError: update without a usable compare value
            RecordNotFoundError: update with no matching document
            StorePersistError: store rejected the read or write
        """
        if mode == ImportMode.CREATE:
            data = {k: v for k, v in record.items() if k != self.identity_field}
            return self._create(data, locale)

        has_compare_value = bool(compare_field) and not _is_blank(record.get(compare_field))

        if mode == ImportMode.UPDATE:
            if not has_compare_value:
                raise MissingCompareFieldError(compare_field)
            existing = self._find_existing(record, compare_field, locale)
            if existing is None:
                raise RecordNotFoundError(compare_field, record[compare_field])
            return self._update(existing, record, locale)

        # Upsert
        if has_compare_value:
            existing = self._find_existing(record, compare_field, locale)
            if existing is not None:
                return self._update(existing, record, locale)
        return self._create(dict(record), locale)

    # ===================
    # STORE CALLS
    # ===================

    def _find_existing(
        self,
        record: dict[str, Any],
        compare_field: str,
        locale: Optional[str]
    ) -> Optional[dict]:
        value = record[compare_field]
        try:
            docs = self.store.find(
                self.collection,
                {compare_field: value},
                locale=locale,
                limit=1
            )
        except AppError:
            raise
        except Exception as e:
            raise StorePersistError("select", str(e)) from e

        self.log.debug(
            "record_lookup",
            collection=self.collection,
            compare_field=compare_field,
            value=value,
            matched=bool(docs)
        )
        return docs[0] if docs else None

    def _create(self, data: dict[str, Any], locale: Optional[str]) -> Resolution:
        try:
            document = self.store.create(self.collection, data, locale=locale)
        except AppError:
            raise
        except Exception as e:
            raise StorePersistError("insert", str(e)) from e

        return Resolution(action=RecordAction.CREATED, id=document.get(self.identity_field))

    def _update(
        self,
        existing: dict[str, Any],
        record: dict[str, Any],
        locale: Optional[str]
    ) -> Resolution:
        document_id = existing[self.identity_field]
        merged = {**existing, **record}

        try:
            self.store.update(document_id, self.collection, merged, locale=locale)
        except AppError:
            raise
        except Exception as e:
            raise StorePersistError("update", str(e)) from e

        return Resolution(action=RecordAction.UPDATED, id=document_id)
