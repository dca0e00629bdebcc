# backend/edu_erp/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from prometheus_client import make_asgi_app
import uvicorn
import logging

from .api.v1.api import api_router
from .config import get_settings, validate_settings
from .core.exceptions import AppError
from .database import check_db_health, db_manager, init_db
from .logging_config import LOGGING_CONFIG, configure_logging
from .schemas.system import HealthResponse

# Get a logger for this specific module
logger = logging.getLogger(__name__)

# Load application settings from the configuration file/environment
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting up the application...")

    for issue in validate_settings(settings):
        logger.warning(f"Configuration issue: {issue}")

    try:
        await init_db(database_url=settings.DATABASE_URL)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down the application...")
    await db_manager.close()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Exam timetable publishing, notifications and audit trail",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Typed application errors carry their own status code."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__} for {request.method} {request.url}: {exc}",
            exc_info=exc.cause or exc,
        )
    else:
        logger.info(f"{exc.__class__.__name__} for {request.method} {request.url}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch any unhandled exceptions and log them with a full traceback.
    Returns a generic 500 error to the client to avoid leaking details.
    """
    logger.error(
        f"Unhandled exception for request {request.method} {request.url}: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."},
    )


# Include API routes from the v1 api module
app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus exposition
app.mount("/metrics", make_asgi_app())


@app.get("/")
async def root():
    """Root endpoint providing basic API information."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "status": "active",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint to verify service and database connectivity."""
    db_health = await check_db_health()
    return HealthResponse(
        status="healthy" if db_health["status"] == "healthy" else "unhealthy",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        database=db_health,
    )


if __name__ == "__main__":
    uvicorn.run(
        "edu_erp.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_config=LOGGING_CONFIG,
    )
