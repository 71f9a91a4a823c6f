"""
Household Insights Engine
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from household_insights.config import get_settings
from household_insights.utils.logger import log
from household_insights import __version__

# Import routers
from household_insights.api import health, insights

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from household_insights.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for cache housekeeping
    try:
        from household_insights.scheduler import start_scheduler, stop_scheduler
        start_scheduler()
        log.info("Scheduler started successfully")
    except Exception as e:
        log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    try:
        stop_scheduler()
    except Exception as e:
        log.warning(f"Scheduler shutdown error: {str(e)}")

    from household_insights.utils.cache import get_cache
    get_cache().wait_for_pending(timeout=5)
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Household Insight Engine

    Turns a household's activity records into a short list of insights:
    - Compiles records into per-category field statistics and trends
    - Asks Claude for observations and recommendations
    - Validates every insight and falls back to a fixed set when needed
    - Caches results in memory and in the database
    - Suggests previously entered values while recording
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(insights.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "household_insights.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1
    )
