"""
Import request, settings and result schemas.

Wire shapes use the camelCase keys the upload wizard sends
(compareField, fieldMappings, csvField, collectionField).
"""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from models.base import WireSchema


class ImportMode(str, Enum):
    """How mapped rows are written to the collection."""
    CREATE = "create"
    UPDATE = "update"
    UPSERT = "upsert"


class RecordAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class FieldMapping(WireSchema):
    """Source column → collection field."""
    source_field: str = Field(..., alias="csvField")
    target_field: str = Field(..., alias="collectionField")


class ImportSettings(WireSchema):
    mode: ImportMode
    compare_field: Optional[str] = Field(None, alias="compareField")
    locale: Optional[str] = None
    field_mappings: list[FieldMapping] = Field(default_factory=list, alias="fieldMappings")


class ImportRequest(WireSchema):
    """Body of POST /api/import."""
    collection: str = Field(..., min_length=1)
    data: list[dict[str, Any]]
    settings: ImportSettings


class RecordOutcome(WireSchema):
    """What happened to one persisted row."""
    row: int = Field(..., ge=1, description="1-based row number in the request")
    id: Any = None
    action: RecordAction


class ImportResult(WireSchema):
    """
    Aggregated outcome of one import run.

    success=True means the request was processable, not that every row
    succeeded; per-row failures live in `errors` as "Row N: ..." strings.
    """
    success: bool = True
    created: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    message: str = ""
    details: Optional[list[RecordOutcome]] = None

    def record(self, outcome: RecordOutcome) -> None:
        if outcome.action == RecordAction.CREATED:
            self.created += 1
        else:
            self.updated += 1
        if self.details is not None:
            self.details.append(outcome)

    def add_error(self, row: int, message: str) -> None:
        self.errors.append(f"Row {row}: {message}")

    def add_mapping_error(self, row: int, message: str) -> None:
        self.errors.append(f"Row {row} mapping error: {message}")

    def finish(self) -> "ImportResult":
        self.message = f"Import completed: created {self.created}, updated {self.updated} records"
        return self

    @classmethod
    def invalid(cls, message: str) -> "ImportResult":
        """Result for a request rejected before processing."""
        return cls(success=False, errors=[message], message="Invalid import payload")

    @classmethod
    def internal_error(cls, message: str) -> "ImportResult":
        """Result for an unexpected orchestration failure; counts stay empty."""
        return cls(success=False, errors=[message or "Unknown error"], message="Internal server error")
