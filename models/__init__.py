"""
Pydantic schemas for collection metadata and import payloads.
"""

from models.base import BaseSchema, WireSchema
from models.schema import (
    FieldKind,
    LAYOUT_TYPES,
    TabDescriptor,
    FieldDescriptor,
    CatalogField,
    CatalogResponse,
)
from models.imports import (
    ImportMode,
    RecordAction,
    FieldMapping,
    ImportSettings,
    ImportRequest,
    RecordOutcome,
    ImportResult,
)

__all__ = [
    "BaseSchema",
    "WireSchema",
    "FieldKind",
    "LAYOUT_TYPES",
    "TabDescriptor",
    "FieldDescriptor",
    "CatalogField",
    "CatalogResponse",
    "ImportMode",
    "RecordAction",
    "FieldMapping",
    "ImportSettings",
    "ImportRequest",
    "RecordOutcome",
    "ImportResult",
]
