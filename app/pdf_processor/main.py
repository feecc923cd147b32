"""
FastAPI application for the PDF financial data processor.

Provides endpoints for:
- Registration, login and admin bootstrap
- User directory management
- Batch extraction of financial figures from annual-report PDFs
- Access to the transient registry of processed files
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import DEV_JWT_KEY, get_settings
from .database import init_db, seed_roles
from .models import HealthResponse
from .routers import auth, pdf, users
from .services.ai import AIServiceError, get_ai_service
from .services.pdf_processing_service import get_pdf_processing_service, get_registry
from .services.user_service import UserServiceError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting PDF Processor (%s)...", settings.environment)
    if settings.jwt_key == DEV_JWT_KEY and not settings.is_development:
        logger.warning("JWT_KEY is not set; using the built-in development key")

    init_db()
    seed_roles()
    get_ai_service()
    get_pdf_processing_service()
    registry = get_registry()
    cleanup_task = asyncio.create_task(
        registry.run_cleanup_loop(settings.cleanup_interval_seconds)
    )
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down PDF Processor...")
    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task
    await asyncio.to_thread(registry.dispose)


# Create FastAPI application
app = FastAPI(
    title="PDF Processor API",
    description="Financial data extraction from annual-report PDFs",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy", version=__version__, message="PDF Processor API is running"
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__, message="Service is healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(pdf.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(UserServiceError)
async def user_service_error_handler(request: Request, exc: UserServiceError):
    """Handle user directory errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": exc.errors},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report body validation failures as identity-style errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(
            {
                "code": "ValidationError",
                "description": error.get("msg", "Invalid value"),
                "field": field or None,
            }
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": errors},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request: Request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )
