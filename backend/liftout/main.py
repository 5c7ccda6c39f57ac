"""
FastAPI application entry point for the Liftout engagement service.

This is the main app that:
- Initializes FastAPI with CORS
- Registers all API routers
- Renders engagement errors as {"detail", "code"}
- Provides health check endpoint
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from liftout.config import settings
from liftout.database import close_db
from liftout.services.errors import EngagementError, ValidationError
# Import API routers
from liftout.api import applications, eois, teams, notifications

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    
    On shutdown: Close database connections gracefully
    """
    # Startup
    logger.info("🚀 Starting Liftout API...")
    logger.info(f"📊 Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"🔔 Notifications: {settings.notification_mode}")
    logger.info(f"🔧 Debug mode: {settings.debug}")
    
    yield
    
    # Shutdown
    logger.info("👋 Shutting down Liftout API...")
    await close_db()


# Initialize FastAPI app
app = FastAPI(
    title="Liftout API",
    description="Engagement lifecycle for team hiring: applications, offers and expressions of interest",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
# Set ALLOWED_ORIGINS environment variable with comma-separated domains
allowed_origins = [
    "http://localhost:3000",  # Local development
]

if settings.allowed_origins:
    allowed_origins.extend(settings.allowed_origins.split(','))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngagementError)
async def engagement_error_handler(request: Request, exc: EngagementError):
    """Typed service failures carry their own status code and machine code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters share the validation_error code."""
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"detail": jsonable_encoder(exc.errors()), "code": ValidationError.code},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {
        "status": "healthy",
        "service": "Liftout API",
        "version": "1.0.0",
    }


# Root endpoint
@app.get("/")
async def root():
    """API root with basic info."""
    return {
        "message": "Liftout API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# Register API routers
app.include_router(applications.router, prefix="/api", tags=["applications"])
app.include_router(eois.router, prefix="/api/eois", tags=["eois"])
app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
