"""
Orders Microservice
Order placement with stock reservation, cancellation, payment verification and reporting
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import subprocess
import os

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from order_engine.core_settings import Settings, get_settings
from order_engine.infrastructure.db import Database
from order_engine.api.errors import register_error_handlers
from order_engine.api.routes import router as orders_router
from order_engine.api.admin_routes import router as admin_router

SERVICE_NAME = "orders-service"
SERVICE_DESCRIPTION = "Order placement and inventory reservation microservice"
PROJECT_ROOT = os.path.join(os.path.dirname(__file__), "..")

logger = get_logger(__name__)

def run_migrations(database_url: str) -> None:
    logger.info("Running database migrations")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            check=False,
            env=dict(os.environ, DATABASE_URL=database_url),
        )
    except OSError as e:
        logger.error(f"Migration error: {e}")
        return
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    database = Database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME} version {settings.SERVICE_VERSION}")

        if settings.RUN_MIGRATIONS:
            run_migrations(settings.database_url)

        try:
            database.open()
            database.init_models()
            logger.info("Database models initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database models: {e}")
            raise

        logger.info(f"{SERVICE_NAME} started successfully")
        yield

        logger.info(f"Shutting down {SERVICE_NAME}")
        database.close()

    app = FastAPI(
        title=SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    health_service = ServiceHealth(
        SERVICE_NAME,
        settings.SERVICE_VERSION,
        engine_provider=lambda: database.engine,
        required_tables=["products", "orders", "order_items", "carts"],
    )
    app.include_router(health_service.create_health_router())

    app.include_router(orders_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    @app.get("/info")
    async def info():
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "description": SERVICE_DESCRIPTION,
            "environment": os.getenv("ENVIRONMENT", "development"),
            "endpoints": {
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
                "metrics": "/metrics",
                "docs": "/api/docs"
            }
        }

    return app

def main() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(service_name=SERVICE_NAME, level=settings.LOG_LEVEL)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=int(os.getenv("PORT", "8000")))

if __name__ == "__main__":
    main()
