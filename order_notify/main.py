"""FastAPI application: main entry point."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from order_notify.application.container import build_services
from order_notify.config import Settings, get_settings
from order_notify.core.exceptions import AppError, global_exception_handler
from order_notify.core.logging import configure_logging
from order_notify.core.middleware import setup_middleware
from order_notify.domain.repositories.message_transport import MessageTransport
from order_notify.infrastructure.database import create_engine_from_settings, create_session_factory, init_db
from order_notify.interfaces.api.monitoring import router as monitoring_router
from order_notify.interfaces.api.notifications import router as notifications_router
from order_notify.interfaces.api.opt_outs import router as opt_outs_router
from order_notify.interfaces.api.orders import router as orders_router
from order_notify.interfaces.api.templates import router as templates_router
from order_notify.interfaces.webhooks.evolution import router as evolution_router
from order_notify.scheduler.jobs import create_scheduler, start_scheduler, stop_scheduler

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, transport: Optional[MessageTransport] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown events."""
        logger.info("Starting Order Notify...", env=settings.ENVIRONMENT)

        engine = create_engine_from_settings(settings)
        # Create DB tables (dev only: use migrations in production)
        await init_db(engine)
        logger.info("Database tables created/verified")

        session_factory = create_session_factory(engine)
        scheduler = create_scheduler(settings)
        services = build_services(settings, session_factory, scheduler=scheduler, transport=transport)

        app.state.session_factory = session_factory
        app.state.scheduler = scheduler
        app.state.services = services

        start_scheduler(scheduler, services)

        yield

        stop_scheduler(scheduler, services)
        await services.queue.wait_for_background()
        await engine.dispose()
        logger.info("Order Notify stopped")

    app = FastAPI(
        title="Order Notify: WhatsApp Order Notifications",
        description="Transactional WhatsApp notifications for restaurant orders",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Correlation ID and request logging
    setup_middleware(app)

    app.add_exception_handler(AppError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(notifications_router)
    app.include_router(orders_router)
    app.include_router(opt_outs_router)
    app.include_router(monitoring_router)
    app.include_router(templates_router)
    app.include_router(evolution_router)

    @app.get("/")
    def root():
        return {
            "name": "Order Notify",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
