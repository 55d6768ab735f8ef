import hmac

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.db.repositories import SweepRepository
from backend.app.db.session import get_session
from backend.app.services.notifications import EmailNotifier, notifier_from_settings
from backend.app.services.stripe_gateway import StripeGateway, gateway_from_settings


def get_sweep_repository(session: AsyncSession = Depends(get_session)) -> SweepRepository:
    return SweepRepository(session)


def get_gateway() -> StripeGateway:
    return gateway_from_settings()


def get_notifier() -> EmailNotifier:
    return notifier_from_settings()


async def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    """Reject scheduler calls without the shared secret, when one is configured."""
    expected = settings.CRON_SECRET
    if not expected:
        return
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, expected):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")
