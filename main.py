import logging
from contextlib import asynccontextmanager

import anyio
from anyio.from_thread import BlockingPortal
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carenotify.config import Settings, get_settings
from carenotify.infrastructure.database import build_engine, engine, initialize_database
from carenotify.infrastructure.notifications import notification_manager
from carenotify.interfaces.api.dependencies import NotificationServices, build_services
from carenotify.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the database and queue, then run delivery workers while serving."""

    services: NotificationServices = app.state.services
    initialize_database(services.engine)
    recovered = services.queue.recover_stale_leases()
    if recovered:
        logger.warning("Requeued %s deliveries abandoned by a previous run", recovered)

    async with BlockingPortal() as portal:
        services.connections.attach_portal(portal)
        if services.settings.worker_enabled:
            services.pool.start()
        try:
            yield
        finally:
            # Workers may be blocked on the portal, so join them off the event loop.
            await anyio.to_thread.run_sync(services.pool.stop)
            services.connections.detach_portal()
            services.manager.shutdown()
    services.engine.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    services: NotificationServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without explicit ``services`` the application is wired from ``settings`` (or the
    environment) against the configured database.
    """

    if services is None:
        bind = engine if settings is None else build_engine(settings.database_url)
        services = build_services(settings or get_settings(), bind, notification_manager)
    settings = services.settings
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="carenotify", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
