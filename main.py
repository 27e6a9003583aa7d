"""
Collection Import API.

Run: uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from config import settings, check_connection
from routes.imports import router as imports_router
from services.collection_registry import get_collection_registry

API_VERSION = "0.1.0"


def configure_logging() -> None:
    """JSON logs in production, console logs elsewhere."""
    logging.basicConfig(format="%(message)s", level=settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration and store reachability at startup."""
    registry = get_collection_registry()
    logger.info(
        "application_starting",
        environment=settings.environment,
        collections=registry.slugs()
    )

    if not settings.supabase_configured:
        logger.warning("document_store_not_configured")
    else:
        status = check_connection()
        if status["status"] != "healthy":
            logger.error("document_store_unreachable", error=status.get("error"))
        elif not status["media_bucket"]:
            logger.warning("media_bucket_missing", bucket=settings.media_storage_bucket)

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Collection Import",
    description="Map tabular rows into document collections with type coercion and media ingestion",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports_router)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """Service status plus document store connectivity."""
    store = check_connection()

    return {
        "status": "healthy" if store["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "document_store": store
    }


@app.get("/")
async def root():
    return {
        "name": "Collection Import API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "collections": get_collection_registry().slugs(),
        "endpoints": {
            "import": "/api/import",
            "fields": "/api/import/{collection}/fields",
            "template": "/api/import/{collection}/template"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Last-resort handler; same envelope as AppError.to_dict()."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
