"""
Application entry point with datastore and snapshot hub lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from studio_crm.config import Settings, settings
from studio_crm.datastore import DataStore
from studio_crm.dependencies import build_container, build_datastore
from studio_crm.features.attribution.api import router as attribution_router
from studio_crm.features.crm.api import join_router, reservations_router
from studio_crm.features.crm.api import router as crm_router
from studio_crm.features.projects.api import router as projects_router
from studio_crm.infrastructure.observability.logging import get_logger, log_request, setup_logging
from studio_crm.middleware import RequestContextMiddleware
from studio_crm.routes import health

logger = get_logger(__name__)


def create_app(
    app_settings: Settings | None = None,
    store: DataStore | None = None,
    webhook_transport=None,
    ai_client=None,
) -> FastAPI:
    """
    Build the application.

    Tests pass their own store (and transports) in; production builds the
    store from DATASTORE_BACKEND inside the lifespan.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=app_settings.LOG_LEVEL)
        logger.info(
            "Application starting",
            environment=app_settings.environment,
            datastore=app_settings.DATASTORE_BACKEND,
        )

        active_store = store or build_datastore(app_settings)
        services = build_container(
            app_settings, active_store, webhook_transport=webhook_transport, ai_client=ai_client
        )
        app.state.services = services

        try:
            await services.hub.start()
        except Exception as e:
            logger.error("Failed to start snapshot hub", error=str(e))
            await active_store.close()
            raise

        logger.info("All services initialized successfully")

        yield

        logger.info("Application shutting down")
        shutdown_errors = []

        try:
            await services.hub.stop()
        except Exception as e:
            logger.error("Error stopping snapshot hub", error=str(e))
            shutdown_errors.append(f"SnapshotHub: {e}")

        try:
            await active_store.close()
        except Exception as e:
            logger.error("Error closing datastore", error=str(e))
            shutdown_errors.append(f"Datastore: {e}")

        if shutdown_errors:
            logger.warning("Some services had shutdown errors", errors=shutdown_errors)
        else:
            logger.info("All services closed successfully")

    app = FastAPI(
        title="Studio CRM",
        description="CRM, chat-identity reconciliation and marketing attribution for a design studio",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(join_router)
    app.include_router(crm_router)
    app.include_router(reservations_router)
    app.include_router(attribution_router)
    app.include_router(projects_router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return response

    # Outermost: the timing log runs inside the request id context
    app.add_middleware(RequestContextMiddleware, app_settings=app_settings)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
