from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import Settings, get_settings
from app.api.v1.router import api_router
from app.database import build_engine, build_session_factory, init_db
from app.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status


logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create missing tables
    - Start background scheduler

    Shutdown:
    - Stop scheduler, dispose engine
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db(app.state.engine)

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        app.state.scheduler = start_scheduler(settings, app.state.session_factory)

    yield

    if app.state.scheduler is not None:
        shutdown_scheduler(app.state.scheduler)
    await app.state.engine.dispose()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Auto-Delivery", "description": "Automatic delivery confirmation for long-shipped orders"},
    {"name": "Delivery Notifications", "description": "Delivery notification inboxes for staff and customers"},
    {"name": "Orders", "description": "Customer delivery confirmation and status audit trail"},
    {"name": "Health", "description": "Service and scheduler health"},
]


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    The settings object is created once here and shared through app.state
    with the database layer, the scheduler and request dependencies.
    An engine built from the settings is used unless one is supplied.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=OPENAPI_TAGS,
    )

    app.state.settings = settings
    app.state.engine = engine if engine is not None else build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.scheduler = None

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Return a JSON error body for anything the endpoints didn't handle."""
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")

        error_detail = {
            "error": "Internal server error",
            "type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        }
        if settings.DEBUG:
            error_detail["error"] = str(exc)
            error_detail["traceback"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=error_detail)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint with database validation."""
        health_status = {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": "unknown",
                "scheduler": "disabled",
            }
        }

        # Check database connectivity
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
                health_status["checks"]["database"] = "connected"
        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["checks"]["database"] = f"error: {str(e)}"

        if app.state.scheduler is not None:
            health_status["checks"]["scheduler"] = get_job_status(app.state.scheduler)

        # Return 503 if unhealthy
        if health_status["status"] == "unhealthy":
            return JSONResponse(status_code=503, content=health_status)

        return health_status

    return app


app = create_app()
