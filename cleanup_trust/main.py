"""
Main FastAPI application for the Cleanup Trust Engine
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from cleanup_trust import __version__
from cleanup_trust.config import settings
from cleanup_trust.api import (
    system,
    sessions,
    reports,
    locations,
    leaderboard,
    guardians,
    notifications
)
from cleanup_trust.db.database import Base, engine
from cleanup_trust.services.errors import TrustError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Cleanup Trust Engine...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database schema ready")
    except Exception as e:
        logger.error(f"Error preparing database schema: {e}")

    yield

    # Shutdown
    logger.info("Shutting down Cleanup Trust Engine...")


app = FastAPI(
    title="Cleanup Trust Engine",
    description="Verification, consensus and points backend for civic cleanup reports",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrustError)
async def trust_error_handler(request: Request, exc: TrustError):
    """Typed rejections carry a stable code and the measured values."""
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "detail": {"reason": str(exc)} if settings.APP_DEBUG else {}
        }
    )


# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(locations.router, prefix="/locations", tags=["Locations"])
app.include_router(leaderboard.router, prefix="/leaderboard", tags=["Leaderboard"])
app.include_router(guardians.router, prefix="/guardians", tags=["Guardians"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Cleanup Trust Engine",
        "version": __version__,
        "status": "running"
    }
