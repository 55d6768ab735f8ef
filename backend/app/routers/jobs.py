from fastapi import APIRouter, Depends

from backend.app.db.repositories import SweepRepository
from backend.app.routers.deps import get_gateway, get_notifier, get_sweep_repository, require_cron_secret
from backend.app.routers.schemas import JobRunOut
from backend.app.services.jobs import cancel_expired_pending_bookings, reconcile_pending_payments
from backend.app.services.notifications import EmailNotifier
from backend.app.services.stripe_gateway import StripeGateway


router = APIRouter(prefix="/jobs", dependencies=[Depends(require_cron_secret)])


@router.post("/payment-reconciliation", response_model=JobRunOut)
async def run_payment_reconciliation(
    sweep: SweepRepository = Depends(get_sweep_repository),
    gateway: StripeGateway = Depends(get_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
) -> JobRunOut:
    """Settle payments left pending because a webhook never arrived."""
    result = await reconcile_pending_payments(sweep, gateway, notifier)
    return JobRunOut(
        message=f"Reconciled {result.processed} payments",
        examined=result.examined,
        processed=result.processed,
        errors=result.errors,
    )


@router.post("/payment-timeouts", response_model=JobRunOut)
async def run_payment_timeouts(
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> JobRunOut:
    """Cancel bookings whose payment was abandoned."""
    result = await cancel_expired_pending_bookings(sweep)
    return JobRunOut(
        message=f"Processed {result.processed} timed out bookings",
        examined=result.examined,
        processed=result.processed,
        errors=result.errors,
    )
