import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from backend.app.db.repositories import SweepRepository
from backend.app.routers.deps import get_gateway, get_notifier, get_sweep_repository
from backend.app.routers.schemas import PaymentQuoteIn, PaymentQuoteOut, WebhookAck
from backend.app.services.notifications import EmailNotifier
from backend.app.services.payments import calculate_payment_amount
from backend.app.services.stripe_gateway import ProcessorNotConfigured, StripeGateway
from backend.app.services.webhooks import handle_stripe_event


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payments/quote", response_model=PaymentQuoteOut)
async def payment_quote(
    payload: PaymentQuoteIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> PaymentQuoteOut:
    result = await calculate_payment_amount(sweep.for_venue(payload.venue_id), payload.service_id, payload.party_size)
    return PaymentQuoteOut(
        should_charge=result.should_charge,
        amount=result.amount,
        description=result.description,
        charge_type=result.charge_type,
        refund_window_hours=result.refund_window_hours,
        auto_refund_enabled=result.auto_refund_enabled,
    )


@router.post("/payments/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    sweep: SweepRepository = Depends(get_sweep_repository),
    gateway: StripeGateway = Depends(get_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
) -> WebhookAck:
    if not stripe_signature:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No signature")

    body = await request.body()
    try:
        event = gateway.verify_event(body, stripe_signature)
    except ProcessorNotConfigured as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except (stripe.SignatureVerificationError, ValueError) as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid signature") from exc

    outcome = await handle_stripe_event(sweep, notifier, event)
    return WebhookAck(outcome=outcome)
