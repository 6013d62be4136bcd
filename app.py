"""
CertVault FastAPI Application

Main application entry point: issues PDF certificates from uploaded
spreadsheets, stores them, and serves the public verification pages.

Example usage:
    # Start the server
    uvicorn app:app --host 0.0.0.0 --port 8000 --reload

    # Health check
    curl http://localhost:8000/health
"""

from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from api.routes.certificates import router as certificates_router
from api.routes.certificates import verify_router
from api.routes.limits import create_limiter
from api.routes.storage import router as storage_router
from auth.tokens import AuthError
from core import __version__
from core.config import DEFAULT_JWT_SECRET, Settings
from core.db import Database
from core.errors import error_response
from core.ingest import BatchIngestor
from core.issue import RowProcessor
from core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from core.records import CertificateRepository
from core.storage import LocalObjectStore
from core.verify import VerificationResponder

# Base directory for the application
BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "web" / "static"

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all HTTP responses.

    Verification pages load their script from ``/static`` so the policy
    needs no per-request nonce and page bodies stay identical across
    requests.

    Example:
        app.add_middleware(SecurityHeadersMiddleware)
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), camera=(), microphone=()"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "style-src 'self' 'unsafe-inline'; "
            "script-src 'self'; "
            "frame-ancestors 'self';"
        )
        return response


async def auth_error_handler(request: Request, exc: AuthError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    response = error_response(exc.message, exc.status_code)
    if headers:
        response.headers.update(headers)
    return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        settings: Runtime configuration (read from the environment if omitted)

    Returns:
        FastAPI: Configured application with its services on ``app.state``

    Raises:
        RuntimeError: If a production deployment uses a weak JWT secret

    Example:
        >>> app = create_app(Settings.from_env())
    """
    settings = settings or Settings.from_env()
    setup_logging(level=settings.log_level, format_type=settings.log_format)

    # Fail fast on insecure JWT secret in production
    if settings.is_production and (
        len(settings.jwt_secret) < 32 or settings.jwt_secret == DEFAULT_JWT_SECRET
    ):
        raise RuntimeError("Insecure JWT_SECRET; set a strong value in environment")

    app = FastAPI(
        title="CertVault",
        description="Issue, store and verify PDF certificates",
        version=__version__,
        docs_url="/api-docs",
        redoc_url="/redoc",
    )

    database = Database.from_settings(settings)
    store = LocalObjectStore.from_settings(settings)
    repository = CertificateRepository(database)
    processor = RowProcessor(settings, store, repository)

    app.state.settings = settings
    app.state.database = database
    app.state.store = store
    app.state.repository = repository
    app.state.ingestor = BatchIngestor(settings, processor)
    app.state.responder = VerificationResponder(repository, store, settings)

    app.add_middleware(SecurityHeadersMiddleware)

    # With credentials, browsers require explicit origins (not *)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.state.limiter = create_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(AuthError, auth_error_handler)

    app.include_router(certificates_router)
    app.include_router(verify_router(app.state.limiter, settings))
    app.include_router(storage_router)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/health", tags=["health"], response_class=PlainTextResponse)
    async def health_check() -> str:
        """Liveness probe for load balancers."""
        return "ok"

    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting CertVault application")
        await database.init()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down CertVault application")
        await database.close()

    return app


app = create_app()


if __name__ == "__main__":
    """
    Development server entry point.
    Run with: python app.py
    """
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
