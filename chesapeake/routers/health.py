"""
Health and readiness endpoints for the platform's probes.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.config import settings
from chesapeake.core.database import get_db_session
from chesapeake.core.schema import SchemaCapabilities, get_schema_capabilities

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.app_version,
        "stripe_configured": settings.stripe_configured,
    }


@router.get("/health/ready")
async def readiness_check(
    session: AsyncSession = Depends(get_db_session),
    capabilities: SchemaCapabilities = Depends(get_schema_capabilities),
) -> dict:
    """
    Ready once the database answers. Optional orders columns that the
    startup probe found missing are listed but do not block traffic.
    """
    try:
        await session.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        database = f"error: {e}"

    return {
        "status": "ready" if database == "connected" else "not_ready",
        "checks": {
            "database": database,
            "orders_missing_columns": sorted(capabilities.missing_optional),
        },
        "timestamp": _now(),
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    return {"status": "alive", "timestamp": _now()}
