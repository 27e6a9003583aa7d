"""
Import API routes.

POST /api/import                           run an import
GET  /api/import/{collection}/fields       importable field catalog
GET  /api/import/{collection}/template     sample CSV/JSON file
"""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool
import structlog

from exceptions import AppError, RequestValidationError
from models.imports import ImportResult
from models.schema import CatalogResponse
from services.import_service import MISSING_FIELDS_MESSAGE, get_import_service
from services.template_service import get_template_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/import", tags=["Import"])

TEMPLATE_MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
}


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def import_response(result: ImportResult, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", exclude_none=True)
    )


# ===================
# ROUTES
# ===================

@router.post("", response_model=ImportResult)
async def run_import(request: Request):
    """
    Import rows into a collection.

    Body: {collection, data: [...rows], settings: {mode, compareField?, locale?, fieldMappings}}

    Returns 200 whenever the request was processable, even if rows failed;
    per-row failures are listed in `errors`.

    Raises:
        400: Malformed request
        500: Unexpected failure
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("import_payload_unreadable")
        return import_response(ImportResult.invalid(MISSING_FIELDS_MESSAGE), status_code=400)

    # Principal for function-valued defaults, when upstream middleware sets one
    principal = getattr(request.state, "user", None)

    try:
        service = get_import_service()
        result = await run_in_threadpool(service.submit_payload, payload, principal)

    except RequestValidationError as e:
        logger.warning("import_payload_invalid", error=e.message)
        return import_response(ImportResult.invalid(e.message), status_code=400)

    except Exception as e:
        logger.error("import_unexpected_error", error=str(e), type=type(e).__name__)
        return import_response(ImportResult.internal_error(str(e)), status_code=500)

    return import_response(result, status_code=200 if result.success else 500)


@router.get("/{collection}/fields", response_model=CatalogResponse)
async def list_import_fields(collection: str):
    """
    List the fields a mapping can target.

    Raises:
        404: Collection not registered
    """
    try:
        service = get_template_service()
        return CatalogResponse(collection=collection, fields=service.catalog(collection))

    except Exception as e:
        return handle_error(e)


@router.get("/{collection}/template")
async def download_import_template(
    collection: str,
    format: str = Query("csv", pattern="^(csv|json)$", description="Template file format")
):
    """
    Download a sample import file for a collection.

    Raises:
        404: Collection not registered
    """
    try:
        service = get_template_service()
        content = service.sample(collection, format)

        return PlainTextResponse(
            content,
            media_type=TEMPLATE_MEDIA_TYPES[format],
            headers={
                "Content-Disposition": f'attachment; filename="{collection}-sample.{format}"'
            }
        )

    except Exception as e:
        return handle_error(e)
