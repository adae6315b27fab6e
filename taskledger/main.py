"""
FastAPI Application Entry Point - Application initialization and configuration
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
import logging
import sys
import time

from taskledger.core.config import settings, validate_config, is_production
from taskledger.core.exceptions import LedgerError
from taskledger.database import check_db_connection, close_db_connections, get_pool_stats, init_db

# Configure application logging with timestamp and log level
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def create_application() -> FastAPI:
    """
    Factory function to create and configure FastAPI application.
    Using factory pattern allows easier testing with different configurations.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/api/docs" if not is_production() else None,  # Hide Swagger docs in production
        redoc_url="/api/redoc" if not is_production() else None,
        description="Task dependency graph and time-tracking ledger"
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_event_handlers(app)
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI) -> None:
    """Configure application middleware - runs on every request/response"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with method, path, status, and processing time"""
        start_time = time.time()
        logger.info(f"➡️  {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"⬅️  {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Time: {process_time:.2f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers for consistent error responses"""

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError):
        """
        Map core outcomes (not found, forbidden, cycle, invalid state, ...)
        to their HTTP status. These are expected and logged as warnings.
        """
        logger.warning(f"⚠️  {exc.error} on {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "detail": exc.detail, "timestamp": time.time()}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Return field-level details for invalid request data"""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(x) for x in error["loc"]),  # Field path (e.g., "body.description")
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(f"❌ Validation error on {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "Validation Error", "detail": errors, "timestamp": time.time()}
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """
        Handle database errors - logs full details but returns generic message.
        Never expose database schema or internal errors to client.
        """
        logger.error(
            f"❌ Database error on {request.method} {request.url.path}: {str(exc)}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Database Error",
                "detail": "An error occurred while processing your request. Please try again later.",
                "timestamp": time.time()
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Catch-all handler for unexpected exceptions"""
        logger.error(
            f"❌ Unhandled exception on {request.method} {request.url.path}: {str(exc)}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal Server Error",
                "detail": "An unexpected error occurred.",
                "timestamp": time.time()
            }
        )


def setup_event_handlers(app: FastAPI) -> None:
    """Configure startup and shutdown event handlers"""

    @app.on_event("startup")
    async def startup_event():
        """
        Validate config and check the database.
        Fail fast: If checks fail, application won't start.
        """
        logger.info("🚀 Starting Task Ledger...")

        try:
            validate_config()
        except ValueError as e:
            logger.error(f"❌ Configuration validation failed: {e}")
            sys.exit(1)

        if not is_production():
            init_db()  # Development convenience - production runs migrations

        if not check_db_connection():
            logger.error("❌ Cannot connect to database. Exiting.")
            sys.exit(1)

        logger.info(f"📊 Database pool: {get_pool_stats()}")
        logger.info("✅ Application started successfully")
        logger.info(f"🌍 Environment: {settings.ENVIRONMENT}")
        logger.info(f"🔧 Debug mode: {settings.DEBUG}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("🛑 Shutting down Task Ledger...")
        close_db_connections()
        logger.info("✅ Shutdown complete")


def setup_routers(app: FastAPI) -> None:
    """Mount API route handlers"""

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Application status, database connectivity, and version info"""
        db_healthy = check_db_connection()

        return {
            "status": "healthy" if db_healthy else "unhealthy",
            "database": "connected" if db_healthy else "disconnected",
            "pool_stats": get_pool_stats(),
            "timestamp": time.time(),
            "version": settings.APP_VERSION
        }

    from taskledger.api import tasks, task_dependencies, time_logs, productivity, events
    app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
    app.include_router(task_dependencies.router, prefix="/api/task-dependencies", tags=["Task Dependencies"])
    app.include_router(time_logs.router, prefix="/api/timelogs", tags=["Time Logs"])
    app.include_router(productivity.router, prefix="/api/productivity", tags=["Productivity"])
    app.include_router(events.router, prefix="/api/events", tags=["Events"])


# Create application instance
app = create_application()

if __name__ == "__main__":
    # Development only - production: `uvicorn taskledger.main:app --host 0.0.0.0 --port 8000`
    import uvicorn
    uvicorn.run(
        "taskledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
