"""
Custom exception classes for the application.

Generic HTTP-shaped errors at the top, import pipeline errors below.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "RECORD_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None,
        message: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=message or f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None,
        status_code: int = 422
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT REQUEST ERRORS
# ===================

class RequestValidationError(ValidationError):
    """Malformed import request, rejected before any row is processed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="IMPORT_REQUEST_INVALID",
            message=message,
            details=details,
            status_code=400
        )


class UnknownCollectionError(NotFoundError):
    """Collection is not registered for import."""

    def __init__(self, collection: str):
        super().__init__(
            resource="Collection",
            identifier=collection,
            code="COLLECTION_NOT_FOUND"
        )


class ImportOrchestrationError(AppError):
    """Unexpected failure while driving an import run."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="IMPORT_FAILED",
            message=message,
            status_code=500,
            details=details
        )


# ===================
# ROW ERRORS
# ===================

class RowMappingError(ValidationError):
    """A source row could not be converted into a record."""

    def __init__(self, row: int, message: str, field: Optional[str] = None):
        details = {"row": row}
        if field:
            details["field"] = field
        super().__init__(
            code="ROW_MAPPING_ERROR",
            message=message,
            details=details
        )
        self.row = row


class MissingCompareFieldError(ValidationError):
    """Update requires a populated compare field."""

    def __init__(self, compare_field: Optional[str]):
        super().__init__(
            code="COMPARE_FIELD_MISSING",
            message=f'missing compare field "{compare_field or ""}"',
            details={"compare_field": compare_field}
        )


class RecordNotFoundError(NotFoundError):
    """No existing record matched the compare field."""

    def __init__(self, compare_field: str, value: Any):
        super().__init__(
            resource="Record",
            identifier=str(value),
            code="RECORD_NOT_FOUND",
            message=f'record with {compare_field}="{value}" not found'
        )
        self.details["compare_field"] = compare_field


class StorePersistError(DatabaseError):
    """Document store rejected a create/update."""

    def __init__(self, operation: str, message: str, details: Optional[dict] = None):
        super().__init__(operation, message, details)
        # Row errors surface the store's own wording
        self.message = message


class StoreWriteConflictError(ConflictError):
    """Transient write conflict reported by the document store."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="STORE_WRITE_CONFLICT",
            message=message,
            details=details
        )


# ===================
# MEDIA ERRORS
# ===================

class MediaFetchError(ExternalServiceError):
    """Network-class failure while downloading a media URL."""

    def __init__(self, url: str, message: str):
        super().__init__(
            service="media_fetch",
            message=message,
            details={"url": url}
        )
        self.url = url


class MediaWriteConflictError(StoreWriteConflictError):
    """Write conflict while persisting a media document."""

    def __init__(self, url: str, message: str):
        super().__init__(message=message, details={"url": url})
        self.code = "MEDIA_WRITE_CONFLICT"
        self.url = url
