from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from gymapp.core.init_db import init_database
from gymapp.core.error_handlers import setup_exception_handlers
from gymapp.core.database import db_manager
from gymapp.core.middleware import setup_middleware
from gymapp.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from gymapp.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    LOG_FORMAT,
    SLOW_REQUEST_THRESHOLD_SECONDS,
)

from gymapp.bookings.routers import bookings
from gymapp.trainers.routers import trainers
from gymapp.payments.routers import payments
from gymapp.transactions.routers import transactions

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("✅ Configuration validated")

        await init_database()
        logger.info("✅ Database initialized")

        log_business_event(
            "application_started",
            "system",
            0,
            {
                "version": APP_VERSION,
                "environment": "development" if DEBUG else "production",
            },
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
        await db_manager.close_connections()
        logger.info("✅ Database connections closed")

    except Exception as e:
        logger.error(f"❌ Error during shutdown: {str(e)}")

    logger.info("👋 Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Gym and trainer bookings with gateway payments",
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

setup_middleware(app, slow_request_threshold=SLOW_REQUEST_THRESHOLD_SECONDS)

app.include_router(bookings.router, prefix="/api/v1")
app.include_router(trainers.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(transactions.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness check"""
    return {
        "status": "healthy",
        "service": APP_NAME,
        "version": APP_VERSION,
        "tracked_errors": error_tracker.get_stats()["total_errors"],
    }
