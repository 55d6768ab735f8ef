from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings
from backend.app.db.session import get_session


router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness check."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Ensure Postgres and Redis are reachable; report whether Stripe keys are loaded."""
    if redis_module.redis_client is None:
        raise HTTPException(status_code=503, detail="Redis unavailable")

    await session.execute(text("SELECT 1 FROM bookings LIMIT 1"))
    try:
        await redis_module.redis_client.ping()
    except Exception as exc:  # pragma: no cover
        raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {
        "ready": True,
        "stripe_live": bool(settings.STRIPE_SECRET_KEY),
        "stripe_test": bool(settings.STRIPE_TEST_SECRET_KEY),
    }
