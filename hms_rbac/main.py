"""
Main FastAPI application entry point.

Authentication is the host application's concern: it must place the current
``User`` on ``request.state.user`` before requests reach these routers.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from hms_rbac.core.config import settings
from hms_rbac.core.database import close_db
from hms_rbac.core.errors import register_exception_handlers
from hms_rbac.core.redis import close_redis, init_redis
from hms_rbac.routers import include_routers

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    # Startup
    try:
        await init_redis()
    except Exception as e:
        # Checks still work without the cache; they just hit the database
        logger.warning(f"Permission cache unavailable at startup: {e}")

    yield

    # Shutdown
    await close_redis()
    close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Hospital permission resolution and approval service",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

register_exception_handlers(app)
include_routers(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.app_env,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hms_rbac.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
