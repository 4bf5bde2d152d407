# backend/mystery_events/main.py
"""
FastAPI application factory.

``create_app()`` wires routers, error handlers and middleware. The database
gateway is created in the lifespan and stored on ``app.state.database``; tests
pass their own ``Database`` (already initialized) and settings.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .api.dependencies.services import get_settings
from .core.config import Settings, settings as default_settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import Database
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import (
    bookings as bookings_v1,
    cron as cron_v1,
    events as events_v1,
    stripe_webhooks as stripe_webhooks_v1,
    vouchers as vouchers_v1,
)
from .routes.v1.admin import (
    bookings as admin_bookings_v1,
    calendar as admin_calendar_v1,
    customers as admin_customers_v1,
    dashboard as admin_dashboard_v1,
    events as admin_events_v1,
    settings as admin_settings_v1,
    templates as admin_templates_v1,
    vouchers as admin_vouchers_v1,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

logger = logging.getLogger(__name__)


def _build_api_router() -> APIRouter:
    api_v1 = APIRouter(prefix="/api/v1")

    api_v1.include_router(events_v1.router, prefix="/events")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(vouchers_v1.router, prefix="/vouchers")
    api_v1.include_router(stripe_webhooks_v1.router, prefix="/stripe")
    api_v1.include_router(cron_v1.router, prefix="/cron")

    api_v1.include_router(admin_events_v1.router, prefix="/admin/events")
    api_v1.include_router(admin_bookings_v1.router, prefix="/admin/bookings")
    api_v1.include_router(admin_customers_v1.router, prefix="/admin/customers")
    api_v1.include_router(admin_templates_v1.router, prefix="/admin/templates")
    api_v1.include_router(admin_vouchers_v1.router, prefix="/admin/vouchers")
    api_v1.include_router(admin_settings_v1.router, prefix="/admin/settings")
    api_v1.include_router(admin_dashboard_v1.router, prefix="/admin/dashboard")
    api_v1.include_router(admin_calendar_v1.router, prefix="/admin/calendar")
    return api_v1


def create_app(config: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    config = config or default_settings

    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"{BRAND_NAME} API starting up...")
        logger.info(f"Environment: {config.environment}, events from {config.event_data_source}")
        owned = database is None
        db = database or Database(config.database_url, echo=config.database_echo)
        db.init()
        app.state.database = db
        try:
            yield
        finally:
            if owned:
                db.dispose()
            logger.info(f"{BRAND_NAME} API shut down")

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    if database is not None:
        app.state.database = database
    if config is not default_settings:
        app.dependency_overrides[get_settings] = lambda: config

    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(_build_api_router())

    @app.get("/health", tags=["health"])
    async def health(request: Request) -> dict:
        db = getattr(request.app.state, "database", None)
        database_status = "unavailable"
        if db is not None and db.is_initialized:
            try:
                with db.engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                database_status = "ok"
            except SQLAlchemyError as e:
                logger.warning("Health check could not reach the database: %s", e)
        return {
            "status": "healthy" if database_status == "ok" else "degraded",
            "service": config.app_name,
            "version": API_VERSION,
            "environment": config.environment,
            "database": database_status,
        }

    @app.get("/metrics", tags=["monitoring"], include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())

    return app


app = create_app()
