"""
FastAPI main application for the Bookzoi API.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.auth import AuthenticationError, Authenticator, HeaderAuthenticator, unauthorized
from api.books import INTERNAL_ERROR, router as books_router
from api.config import APIConfig, config as default_config
from api.database import BookDatabaseService
from api.models import ErrorResponse, HealthResponse
from store import DataStore, create_store
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)


def _error_content(detail) -> dict:
    if isinstance(detail, dict):
        return detail
    return ErrorResponse(error=str(detail)).model_dump(exclude_none=True)


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(messages) or "Invalid request"


def create_app(
    store: Optional[DataStore] = None,
    authenticator: Optional[Authenticator] = None,
    config: Optional[APIConfig] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Data store to use; built from configuration at startup when omitted
        authenticator: Caller identification; defaults to the user id header
        config: API configuration

    Returns:
        Configured FastAPI application
    """
    config = config or default_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging(
            log_level=config.log_level,
            log_format=config.log_format,
            log_file=config.log_file,
            debug=config.debug
        )
        logger.info("Starting Bookzoi API", store_backend=config.store_backend)

        owns_store = app.state.store is None
        if owns_store:
            try:
                app.state.store = create_store(config)
            except Exception as e:
                logger.error("Failed to initialize data store", error=str(e))
                raise
            app.state.book_service = BookDatabaseService(app.state.store)
            logger.info("Data store initialized")

        yield

        logger.info("Shutting down Bookzoi API")
        if owns_store and app.state.store is not None:
            await app.state.store.close()
            app.state.store = None
            app.state.book_service = None

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan
    )

    app.state.store = store
    app.state.book_service = BookDatabaseService(store) if store is not None else None
    app.state.authenticator = authenticator or HeaderAuthenticator(config.auth_header)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc: HTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_content(exc.detail),
            headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc: RequestValidationError):
        """Report request validation failures as 400, once the caller is authenticated."""
        try:
            request.app.state.authenticator.authenticate(request)
        except AuthenticationError as e:
            return await http_exception_handler(request, unauthorized(request, str(e)))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error=_validation_message(exc)).model_dump(exclude_none=True)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=INTERNAL_ERROR).model_dump(exclude_none=True)
        )

    # Health check endpoint (no authentication required)
    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(status="ok", message="Bookzoi API is running")

    app.include_router(books_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=default_config.host,
        port=default_config.port,
        reload=default_config.debug,
        log_level=default_config.log_level.lower()
    )
