"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from pocket_pause import metrics  # noqa: F401  registers app info
from pocket_pause.api.routes import notifications, parse, proxy
from pocket_pause.config import settings
from pocket_pause.db.models import Base
from pocket_pause.db.session import AsyncSessionLocal, engine
from pocket_pause.ingest.fetchers.firecrawl import FirecrawlClient
from pocket_pause.ingest.parser import build_parser, set_default_parser
from pocket_pause.notify.queue import NotificationQueue
from pocket_pause.worker.scheduler import setup_scheduler
from pocket_pause.worker.tasks import task_runner

# Configure structured logging
from pocket_pause.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

# Global scheduler
scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global scheduler

    # Startup
    logger.info("Starting Pocket Pause...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    parser = build_parser()
    set_default_parser(parser)
    app.state.parser = parser
    app.state.firecrawl = FirecrawlClient()
    app.state.queue = NotificationQueue(AsyncSessionLocal)
    if not app.state.firecrawl.configured:
        logger.warning("FIRECRAWL_API_KEY not set; /proxy/fetch will answer 503")

    # Initialize task runner
    task_runner.queue = app.state.queue
    await task_runner.initialize()

    # Start scheduler
    scheduler = setup_scheduler(task_runner)
    scheduler.start()
    logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")

    if scheduler:
        scheduler.shutdown()

    await task_runner.close()
    await parser.close()
    await app.state.firecrawl.close()
    set_default_parser(None)
    await engine.dispose()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Pocket Pause",
    description="Product link parsing and mindful-purchase notifications",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(parse.router)
app.include_router(notifications.router)
app.include_router(proxy.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "pocket_pause.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
