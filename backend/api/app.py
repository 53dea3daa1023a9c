"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.config import get_settings
from core.database import get_database_manager, init_database_manager
from core.dependencies import close_discord_clients
from core.errors import register_exception_handlers
from core.logging import setup_logging
from routers import auth_router, guilds_router
from shared.database import DatabaseManager

logger = logging.getLogger(__name__)

_start_time: float = 0.0
_db_retry_task: asyncio.Task | None = None


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Background loop to retry DB connection after startup timeout."""
    delay = 5
    max_delay = 60
    while not db_manager.is_connected:
        await asyncio.sleep(delay)
        try:
            await db_manager.connect()
            logger.info("Database connected (background retry)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time, _db_retry_task
    _start_time = time.time()

    settings = get_settings()
    logger.info("Starting Flamey dashboard API")
    logger.info(f"Environment: {settings.environment}")

    missing = settings.missing_required()
    if missing:
        # Endpoints needing these fail with a configuration error on first use
        logger.error(f"Missing configuration: {', '.join(missing)}")

    db_manager = None
    if settings.database_url:
        db_manager = init_database_manager(settings.database_url)
        try:
            await asyncio.wait_for(db_manager.connect(), timeout=30)
            logger.info("Database connected")
        except Exception as e:
            logger.error(
                f"DB connection failed during startup: {type(e).__name__}: {e}, "
                "retrying in background"
            )
            _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))

    yield

    logger.info("Shutting down Flamey dashboard API")
    if _db_retry_task:
        _db_retry_task.cancel()
        _db_retry_task = None
    await close_discord_clients()
    if db_manager is not None:
        await db_manager.disconnect()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Flamey Dashboard API",
        description="Discord credential and guild authorization backend for the Flamey dashboard",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router.router)
    app.include_router(guilds_router.router)

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": "flamey-dashboard-api", "status": "running"}

    @app.get("/health")
    async def health():
        """Liveness check (no DB dependency)"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.get("/status")
    async def status():
        """Readiness: DB health and missing configuration (names only)"""
        db_manager = get_database_manager()
        db_ok = db_manager is not None and await db_manager.check_health()
        return {
            "service": "flamey-dashboard-api",
            "version": "1.0.0",
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "missing_config": settings.missing_required(),
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")

    return app
