"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api import admin, lists, tribes
from src.config import get_settings
from src.services.errors import DuplicateError, ListEngineError

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info(f"Starting Tribe Lists API ({settings.environment})")
    yield


app = FastAPI(
    title="Tribe Lists API",
    description="List ownership, tribe sharing and external sync",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ListEngineError)
async def list_engine_error_handler(request: Request, exc: ListEngineError) -> JSONResponse:
    """Render domain errors as ``{"detail": ...}`` with their HTTP status."""
    content: dict = {"detail": exc.detail}
    if isinstance(exc, DuplicateError) and exc.existing is not None:
        content["existing"] = {"id": exc.existing.id, "name": exc.existing.name}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=content)


# Register routers
app.include_router(lists.router)
app.include_router(tribes.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
