"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Import requests
    RequestValidationError,
    UnknownCollectionError,
    ImportOrchestrationError,

    # Rows
    RowMappingError,
    MissingCompareFieldError,
    RecordNotFoundError,
    StorePersistError,
    StoreWriteConflictError,

    # Media
    MediaFetchError,
    MediaWriteConflictError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Import requests
    "RequestValidationError",
    "UnknownCollectionError",
    "ImportOrchestrationError",

    # Rows
    "RowMappingError",
    "MissingCompareFieldError",
    "RecordNotFoundError",
    "StorePersistError",
    "StoreWriteConflictError",

    # Media
    "MediaFetchError",
    "MediaWriteConflictError",
]
