"""
Orderhub - order management event subsystem
Main FastAPI Application
"""
from contextlib import asynccontextmanager
import logging
import socket
import time
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import AsyncMongoClient
import redis.asyncio as redis
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from orderhub.api.v1 import api_router, ws_router
from orderhub.core.config import Settings, settings
from orderhub.core.rate_limit import limiter
from orderhub.domains.handler_manager import EventHandlerManager
from orderhub.infrastructure.di import Container, build_container
from orderhub.infrastructure.event_bus import EventBus
from orderhub.infrastructure.observability import (
    METRICS_CONTENT_TYPE,
    ObservabilityMiddleware,
    configure_structlog,
    render_metrics,
)
from orderhub.shared_kernel.event_types import SystemEvents
from orderhub.shared_kernel.exceptions import (
    DomainException,
    EntityNotFoundError,
    InfrastructureError,
    NotInitializedError,
    StoreNotInitializedError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
)
logger = logging.getLogger(__name__)
logging.getLogger("orderhub").setLevel(settings.LOG_LEVEL)

if settings.STRUCTURED_LOGGING_ENABLED:
    configure_structlog(settings.LOG_LEVEL)


def _status_for(exc: DomainException) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, EntityNotFoundError):
        return 404
    if isinstance(exc, (NotInitializedError, StoreNotInitializedError)):
        return 503
    if isinstance(exc, InfrastructureError):
        return 500
    return 400


async def _publish_lifecycle(bus: EventBus, event_type: str, config: Settings) -> None:
    try:
        await bus.publish(
            event_type,
            {
                "service": config.PROJECT_NAME,
                "version": config.VERSION,
                "environment": config.APP_ENV,
                "host": socket.gethostname(),
            },
            {"source": config.EVENT_SOURCE},
        )
    except Exception:
        logger.exception("Failed to publish %s", event_type)


async def _close_clients(container: Container) -> None:
    for instance in container.resolved_singletons().values():
        if isinstance(instance, AsyncMongoClient):
            await instance.close()
        elif isinstance(instance, redis.Redis):
            await instance.aclose()


def create_app(
    config: Settings = settings,
    container_factory: Optional[Callable[[Settings], Container]] = None,
) -> FastAPI:
    factory = container_factory or build_container

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize and cleanup application resources."""
        logger.info("Starting %s v%s", config.PROJECT_NAME, config.VERSION)
        logger.info("Environment: %s", config.APP_ENV)

        container = factory(config)
        app.state.container = container

        bus = container.resolve(EventBus)
        await bus.initialize()
        handlers = container.resolve(EventHandlerManager)
        handlers.initialize()
        await _publish_lifecycle(bus, SystemEvents.SYSTEM_STARTUP, config)

        yield

        logger.info("Shutting down %s", config.PROJECT_NAME)
        await _publish_lifecycle(bus, SystemEvents.SYSTEM_SHUTDOWN, config)
        handlers.shutdown()
        await bus.shutdown()
        await _close_clients(container)
        app.state.container = None

    app = FastAPI(
        title=config.PROJECT_NAME,
        version=config.VERSION,
        description="Event bus, event store and domain handlers for order management",
        docs_url="/api/docs" if config.DEBUG else None,
        redoc_url="/api/redoc" if config.DEBUG else None,
        openapi_url="/api/openapi.json" if config.DEBUG else None,
        lifespan=lifespan,
    )

    # Add rate limiter state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.OBSERVABILITY_ENABLED:
        app.add_middleware(ObservabilityMiddleware)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        return JSONResponse(
            status_code=_status_for(exc),
            content={"status": "error", "detail": str(exc), "code": exc.code, "details": exc.details},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=True,
            extra={"method": request.method, "url": str(request.url)},
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "detail": "An internal error occurred",
                "error": str(exc) if config.DEBUG else None,
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": config.VERSION,
            "environment": config.APP_ENV,
        }

    if config.METRICS_ENABLED:
        @app.get(config.METRICS_PATH, tags=["Metrics"])
        async def metrics():
            return Response(content=render_metrics(), media_type=METRICS_CONTENT_TYPE)

    app.include_router(api_router, prefix=config.API_V1_PREFIX)
    app.include_router(ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "orderhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
