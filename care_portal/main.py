from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from care_portal.core.limits import limiter, rate_limit_handler
from care_portal.core.init_db import init_database
from care_portal.core.error_handlers import setup_exception_handlers
from care_portal.core.database import db_manager
from care_portal.core.cache import cache_backend
from care_portal.core.middleware import setup_middleware
from care_portal.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from care_portal.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
)

from care_portal.enrollments.routers import children
from care_portal.enrollments.routers import enrollments

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown"""

    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("✅ Configuration validated")

        await init_database()
        logger.info("✅ Database initialized")

        log_business_event(
            "application_started",
            "system",
            APP_NAME,
            {"version": APP_VERSION, "environment": ENVIRONMENT},
        )

        logger.info("🚀 Application startup completed")

    except Exception as e:
        logger.error(f"❌ Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("🛑 Shutting down application...")

    try:
        await cache_backend.close()
        await db_manager.close_connections()
        logger.info("✅ Connections closed")

    except Exception as e:
        logger.error(f"❌ Error during shutdown: {str(e)}")

    logger.info("👋 Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Service enrollment lifecycle: staff changes, deactivation and reactivation",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 2.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(children.router, prefix="/api/v1")
app.include_router(enrollments.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness check with error counters"""
    stats = error_tracker.get_stats()
    return {
        "status": "ok",
        "version": APP_VERSION,
        "environment": ENVIRONMENT,
        "errors": {
            "total": stats["total_errors"],
            "by_type": stats["error_counts"],
        },
    }
