"""
Shibr marketplace API: application factory, middleware and error handling.
"""
import time
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shibr.core.config import settings
from shibr.core.database import close_db, init_db
from shibr.core.exceptions import ShibrError
from shibr.core.logging_config import configure_logging
from shibr.core.redis import redis_client
from shibr.services.messaging import close_otp_provider
from shibr.api.endpoints import (
    admin, auth, branches, clearances, conversations, health, notifications,
    orders, products, rentals, reviews, shelves, storefront, verification,
)

configure_logging()
logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

ROUTERS = [
    (auth.router, "/auth", "Authentication"),
    (branches.router, "/branches", "Branches"),
    (shelves.router, "/shelves", "Shelves"),
    (products.router, "/products", "Products"),
    (storefront.router, "", "Storefront"),
    (verification.router, "/checkout", "Checkout"),
    (orders.router, "/orders", "Orders"),
    (rentals.router, "/rentals", "Rentals"),
    (clearances.router, "/clearances", "Clearances"),
    (conversations.router, "/conversations", "Chat"),
    (notifications.router, "/notifications", "Notifications"),
    (reviews.router, "/reviews", "Reviews"),
    (admin.router, "/admin", "Admin"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("application_starting", environment=settings.ENVIRONMENT)
    await init_db()
    await redis_client.connect()
    try:
        yield
    finally:
        await close_otp_provider()
        await redis_client.disconnect()
        await close_db()
        logger.info("application_stopped")


async def request_context(request: Request, call_next):
    """Tag every log line of a request with its id and log the outcome."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    started = time.perf_counter()

    response = await call_next(request)

    response.headers[REQUEST_ID_HEADER] = request_id
    logger.info(
        "request_completed",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


async def shibr_error_handler(request: Request, exc: ShibrError):
    """Business rule failures become {"detail": ...} with the error's status."""
    logger.warning(
        "request_rejected",
        error=exc.detail,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def setup_metrics(app: FastAPI) -> None:
    """Expose Prometheus request metrics, leaving out probes and docs."""
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[settings.METRICS_PATH, "/health.*", "/docs", "/redoc", "/openapi.json"],
        inprogress_labels=True,
    ).instrument(app).expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Shelf rental marketplace connecting store owners, brands and shoppers",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(request_context)

    app.add_exception_handler(ShibrError, shibr_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    if settings.METRICS_ENABLED:
        setup_metrics(app)

    app.include_router(health.router, tags=["Health"])
    for router, prefix, tag in ROUTERS:
        app.include_router(router, prefix=f"{settings.API_V1_PREFIX}{prefix}", tags=[tag])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": "/docs" if settings.DEBUG else "disabled",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shibr.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
