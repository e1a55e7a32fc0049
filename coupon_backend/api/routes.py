from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_backend.api import coupons
from coupon_backend.core.metrics import snapshot as metrics_snapshot
from coupon_backend.db.session import get_session

LIVENESS_MESSAGE = "Coupon Backend is Live!"

api_router = APIRouter()

api_router.include_router(coupons.router)


@api_router.get("/", response_class=PlainTextResponse, tags=["health"])
def root() -> str:
    return LIVENESS_MESSAGE


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, str]:
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable") from exc
    return {"status": "ready"}


@api_router.get("/metrics", tags=["metrics"])
def metrics() -> dict[str, int]:
    return metrics_snapshot()
