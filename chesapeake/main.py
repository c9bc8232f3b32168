"""
The Chesapeake Shell API - Main Application Entry Point.

Receives Stripe webhooks and reconciles completed checkouts into orders.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chesapeake.core.config import settings
from chesapeake.core.database import close_db, get_db_context, init_db
from chesapeake.core.logging import configure_logging, get_logger
from chesapeake.core.schema import get_schema_capabilities
from chesapeake.middleware import ErrorHandlerMiddleware, RequestIdMiddleware
from chesapeake.repositories.order import OrderRepository
from chesapeake.routers import checkout_router, health_router, webhooks_router
from chesapeake.services.backfill import backfill_display_ids

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


async def run_startup_backfill() -> dict[str, str]:
    """Number any orders that predate display order ids."""
    async with get_db_context() as session:
        orders = OrderRepository(session, get_schema_capabilities())
        return await backfill_display_ids(session, orders)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Probe the schema, number legacy orders, then serve."""
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Schema probe runs inside init_db; the backfill depends on it
    await init_db()
    await run_startup_backfill()

    if not settings.stripe_configured:
        logger.warning("Stripe secrets missing, webhook will answer 500")

    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    yield

    logger.info("Shutting down application")
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Stripe order reconciliation for The Chesapeake Shell",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # First added = innermost
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Stripe-Signature",
            "X-Request-ID",
        ],
    )

    app.include_router(health_router)
    app.include_router(webhooks_router, prefix="/api")
    app.include_router(checkout_router, prefix="/api")

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chesapeake.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
