"""
Import service: drives one import run end to end.

Flow:
    rows → RowMapper (parallel, bounded) → records in row order
         → RecordResolver (sequential) → ImportResult

A failing row never stops the run; its error is recorded as "Row N: ...".
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

import requests
import structlog
from pydantic import ValidationError as PydanticValidationError

from config import settings
from exceptions import (
    AppError,
    ImportOrchestrationError,
    RequestValidationError,
    RowMappingError,
)
from models.imports import (
    ImportRequest,
    ImportResult,
    ImportSettings,
    RecordOutcome,
)
from services.collection_registry import CollectionRegistry, get_collection_registry
from services.document_store import DocumentStore, get_document_store
from services.media_ingestor import MediaCache, MediaIngestor
from services.record_resolver import RecordResolver
from services.row_mapper import RowMapper
from services.schema_index import SchemaIndex

logger = structlog.get_logger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: collection, data"


def parse_request(payload: Any) -> ImportRequest:
    """
    Validate a raw import payload.

    Raises:
        RequestValidationError: collection/data missing, data not a list,
            or settings malformed
    """
    if not isinstance(payload, dict):
        raise RequestValidationError(MISSING_FIELDS_MESSAGE)

    if not payload.get("collection") or not isinstance(payload.get("data"), list):
        raise RequestValidationError(MISSING_FIELDS_MESSAGE)

    try:
        return ImportRequest.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise RequestValidationError(
            f"Invalid import payload: {location}: {first['msg']}",
            details={"errors": e.errors(include_url=False, include_context=False)}
        ) from e


class ImportService:
    """
    Import business logic.

    Collaborators are injectable; by default the Supabase document store and
    the collection registry from settings are used.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        registry: Optional[CollectionRegistry] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: Optional[int] = None,
        identity_field: Optional[str] = None,
        default_locale: Optional[str] = None,
        include_details: Optional[bool] = None
    ):
        self.store = store if store is not None else get_document_store()
        self.registry = registry if registry is not None else get_collection_registry()
        self.session = session
        self.sleep = sleep
        self.max_workers = max_workers or settings.mapping_max_workers
        self.identity_field = identity_field or settings.identity_field
        self.default_locale = default_locale or settings.default_locale
        self.include_details = settings.details_enabled if include_details is None else include_details

    # ===================
    # ENTRY POINTS
    # ===================

    def submit(
        self,
        collection: str,
        rows: list[dict[str, Any]],
        import_settings: ImportSettings,
        principal: Any = None
    ) -> ImportResult:
        """
        Import rows into a collection.

        Returns an ImportResult with success=True whenever the run completed,
        whatever the per-row outcomes; success=False only on unexpected failure.
        """
        logger.info(
            "import_started",
            collection=collection,
            rows=len(rows),
            mode=import_settings.mode.value,
            compare_field=import_settings.compare_field,
            mappings=len(import_settings.field_mappings)
        )

        try:
            schema = self.registry.schema_index(collection)
            if schema is None:
                logger.warning("collection_not_registered", collection=collection)
                schema = SchemaIndex.empty()

            result = self.run(collection, rows, import_settings, schema, principal)

        except Exception as e:
            error = e if isinstance(e, AppError) else ImportOrchestrationError(str(e))
            logger.error(
                "import_failed",
                collection=collection,
                code=error.code,
                error=error.message,
                error_type=type(e).__name__
            )
            return ImportResult.internal_error(error.message)

        logger.info(
            "import_complete",
            collection=collection,
            created=result.created,
            updated=result.updated,
            errors=len(result.errors)
        )
        return result

    def submit_payload(self, payload: Any, principal: Any = None) -> ImportResult:
        """
        Validate and import a raw request body.

        Raises:
            RequestValidationError: If the payload is malformed
        """
        request = parse_request(payload)
        return self.submit(request.collection, request.data, request.settings, principal)

    # ===================
    # RUN
    # ===================

    def run(
        self,
        collection: str,
        rows: list[dict[str, Any]],
        import_settings: ImportSettings,
        schema: SchemaIndex,
        principal: Any = None
    ) -> ImportResult:
        result = ImportResult(details=[] if self.include_details else None)

        # One media cache and HTTP session per run, shared by every row's mapping
        session = self.session if self.session is not None else requests.Session()
        try:
            media = MediaIngestor(
                self.store,
                cache=MediaCache(),
                session=session,
                sleep=self.sleep,
                identity_field=self.identity_field
            )
            mapper = RowMapper(
                schema,
                media=media,
                identity_field=self.identity_field,
                principal=principal
            )
            records = self._map_rows(mapper, rows, import_settings, result)
        finally:
            # Injected sessions belong to the caller
            if session is not self.session:
                session.close()

        resolver = RecordResolver(self.store, collection, identity_field=self.identity_field)
        locale = import_settings.locale or self.default_locale

        for row_number, record in records:
            try:
                resolution = resolver.apply(
                    record,
                    import_settings.mode,
                    compare_field=import_settings.compare_field,
                    locale=locale
                )
            except AppError as e:
                logger.warning("row_persist_failed", row=row_number, code=e.code, error=e.message)
                result.add_error(row_number, e.message)
                continue
            except Exception as e:
                logger.warning("row_persist_failed", row=row_number, error=str(e))
                result.add_error(row_number, str(e))
                continue

            result.record(
                RecordOutcome(row=row_number, id=resolution.id, action=resolution.action)
            )

        return result.finish()

    def _map_rows(
        self,
        mapper: RowMapper,
        rows: list[dict[str, Any]],
        import_settings: ImportSettings,
        result: ImportResult
    ) -> list[tuple[int, dict[str, Any]]]:
        """Map every row in parallel; return (row_number, record) in row order."""
        if not rows:
            return []

        workers = min(self.max_workers, len(rows))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(
                    mapper.map,
                    row,
                    import_settings.field_mappings,
                    import_settings.mode,
                    index + 1
                )
                for index, row in enumerate(rows)
            ]

            records = []
            for index, future in enumerate(futures):
                row_number = index + 1
                try:
                    records.append((row_number, future.result()))
                except RowMappingError as e:
                    logger.warning("row_mapping_failed", row=row_number, error=e.message)
                    result.add_mapping_error(row_number, e.message)
                except Exception as e:
                    logger.warning("row_mapping_failed", row=row_number, error=str(e))
                    result.add_mapping_error(row_number, str(e))

        return records


# Singleton instance for convenience
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
