"""
Business logic services.

Each service handles one stage of the import pipeline.
"""

from services.schema_index import SchemaIndex, SchemaEntry
from services.collection_registry import CollectionRegistry, get_collection_registry
from services.document_store import (
    DocumentStore,
    MediaFile,
    SupabaseDocumentStore,
    get_document_store,
)
from services.media_ingestor import MediaCache, MediaIngestor
from services.row_mapper import RowMapper
from services.record_resolver import RecordResolver, Resolution
from services.import_service import ImportService, get_import_service, parse_request
from services.template_service import TemplateService, get_template_service

__all__ = [
    "SchemaIndex",
    "SchemaEntry",
    "CollectionRegistry",
    "get_collection_registry",
    "DocumentStore",
    "MediaFile",
    "SupabaseDocumentStore",
    "get_document_store",
    "MediaCache",
    "MediaIngestor",
    "RowMapper",
    "RecordResolver",
    "Resolution",
    "ImportService",
    "get_import_service",
    "parse_request",
    "TemplateService",
    "get_template_service",
]
