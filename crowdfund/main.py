import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, manifest, trail
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .providers.trails import get_trails_provider
from .services.crowdfund import CrowdfundService
from .services.refresh import RefreshScheduler

logger = logging.getLogger(__name__)


def build_scheduler() -> RefreshScheduler:
    """Register the shared feed and stats refresh jobs."""
    crowdfund = CrowdfundService(get_trails_provider())
    scheduler = RefreshScheduler()
    scheduler.register(trail.FEED_JOB, crowdfund.get_community_feed, settings.feed_refresh_interval_seconds)
    scheduler.register(trail.STATS_JOB, crowdfund.get_step_stats, settings.stats_refresh_interval_seconds)
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    scheduler = None
    if settings.refresh_scheduler_enabled:
        scheduler = build_scheduler()
        await scheduler.start()
    app.state.refresh_scheduler = scheduler
    logger.info("Crowdfund API started (trail %s)", settings.trail_id)
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        app.state.refresh_scheduler = None


# Create FastAPI app
app = FastAPI(
    title="Brooklyn ACC Dog Crowdfund API",
    description="Trails-backed crowdfund mini-app backend",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(manifest.router, tags=["Manifest"])
app.include_router(trail.router, tags=["Trail"])
app.include_router(trail.crowdfund_router, tags=["Crowdfund"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": manifest.APP_NAME,
        "version": __version__,
        "trailId": settings.trail_id,
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "crowdfund.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
