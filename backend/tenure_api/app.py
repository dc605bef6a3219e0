"""FastAPI application factory"""

import asyncio
import logging
import traceback
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenure_api.core.config import Settings, get_settings
from tenure_api.core.database import init_database_manager
from tenure_api.core.dependencies import get_db_manager
from tenure_api.core.logging import setup_logging
from tenure_api.core.rate_limit import FixedWindowRateLimiter, rate_limit_middleware
from tenure_api.routers import queue_router
from tenure_shared.database import DatabaseManager
from tenure_shared.errors import NotFoundError, QueueServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "tenure-queue-service"
SERVICE_VERSION = "1.0.0"

_db_retry_task: asyncio.Task | None = None


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Keep retrying the pool after a failed startup connection."""
    delay = 5
    max_delay = 60
    while True:
        await asyncio.sleep(delay)
        if db_manager.is_connected:
            return
        try:
            await db_manager.connect()
            logger.info("Database connected (background retry)")
            return
        except asyncio.CancelledError:
            return
        except Exception as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _db_retry_task
    settings: Settings = app.state.settings

    logger.info(f"Starting {SERVICE_NAME} v{SERVICE_VERSION}")
    logger.info(f"Environment: {settings.environment}")
    if settings.is_serverless:
        logger.info("Running in serverless mode")

    db_manager = init_database_manager(settings)
    try:
        await asyncio.wait_for(db_manager.connect(), timeout=30)
        logger.info("Database connection successful")
    except Exception as e:
        # Serve /health and answer 503 on data routes until the pool comes up
        logger.error(
            f"DB connection failed during startup: {type(e).__name__}: {e}, retrying in background"
        )
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    if _db_retry_task:
        _db_retry_task.cancel()
    await db_manager.disconnect()


def _error_body(settings: Settings, exc: Exception) -> dict:
    if settings.is_production:
        return {"success": False, "error": "Internal server error"}
    return {
        "success": False,
        "error": str(exc) or type(exc).__name__,
        "stack": "".join(traceback.format_exception(exc)),
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Every error leaves the service as ``{"success": false, "error": ...}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not isinstance(exc.detail, dict):
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": "Endpoint not found", "path": request.url.path},
            )
        detail = exc.detail if isinstance(exc.detail, dict) else {"error": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, **detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        message = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'request'}: {err.get('msg')}"
            for err in errors
        )
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid request parameters",
                "message": message,
                "details": errors,
            },
        )

    @app.exception_handler(QueueServiceError)
    async def queue_error_handler(request: Request, exc: QueueServiceError):
        status_code = settings.not_found_status if isinstance(exc, NotFoundError) else exc.status_code
        logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": exc.error, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Global error handler: {exc}")
        return JSONResponse(status_code=500, content=_error_body(settings, exc))


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Tenure Queue Service",
        description="Read-only membership queue API backed by active_member_queue_view",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings
    # Route dependencies resolve the same settings the app was built with
    app.dependency_overrides[get_settings] = lambda: settings

    limiter = FixedWindowRateLimiter(
        settings.rate_limit_max_requests, settings.rate_limit_window_seconds
    )
    app.middleware("http")(rate_limit_middleware(limiter))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cookie"],
    )

    register_exception_handlers(app, settings)
    app.include_router(queue_router.router)

    @app.get("/")
    async def root():
        """Service info and endpoint map"""
        return {
            "success": True,
            "message": "Tenure Queue Service API",
            "version": SERVICE_VERSION,
            "endpoints": {
                "health": "/health",
                "queue": "/api/queue",
                "statistics": "/api/queue/statistics",
                "search": "/api/queue/search",
                "member": "/api/queue/:memberId",
            },
        }

    @app.get("/health")
    async def health(db_manager: DatabaseManager | None = Depends(get_db_manager)):
        """Liveness check; reports database reachability without failing"""
        db_ok = db_manager is not None and await db_manager.check_health()
        return {
            "success": True,
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": datetime.now(UTC).isoformat(),
            "database": "connected" if db_ok else "disconnected",
        }

    logger.info("FastAPI application configured")

    return app
