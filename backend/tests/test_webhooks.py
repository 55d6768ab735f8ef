import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from backend.app.main import app
from backend.app.routers.deps import get_gateway, get_notifier, get_sweep_repository
from backend.app.services.stripe_gateway import StripeGateway
from backend.app.services.webhooks import handle_stripe_event


pytestmark = pytest.mark.asyncio

WEBHOOK_SECRET = "whsec_test_secret"


def _event(event_type, intent_id="pi_123", **intent_fields):
    return {
        "id": "evt_1",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", **intent_fields}},
    }


def _signature(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _pending(store, venue_id, intent_id="pi_123"):
    booking_id = store.add_booking(
        venue_id,
        status="pending_payment",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        email="guest@example.com",
    )
    payment_id = store.add_payment(booking_id, intent_id=intent_id)
    return booking_id, payment_id


async def test_succeeded_event_confirms_booking(store, sweep, notifier, venue_id):
    booking_id, payment_id = _pending(store, venue_id)

    outcome = await handle_stripe_event(
        sweep, notifier, _event("payment_intent.succeeded", payment_method_types=["card"])
    )

    assert outcome == "succeeded"
    assert store.payments[payment_id]["status"] == "succeeded"
    assert store.bookings[booking_id]["status"] == "confirmed"
    assert store.audit[-1][1].change_type == "stripe_webhook_success"
    assert notifier.sent == [(booking_id, "guest@example.com", venue_id)]


def _declined():
    return _event(
        "payment_intent.payment_failed",
        status="requires_payment_method",
        last_payment_error={"message": "Your card was declined."},
    )


async def test_failed_event_keeps_booking_awaiting_payment(store, sweep, notifier, venue_id):
    booking_id, payment_id = _pending(store, venue_id)

    outcome = await handle_stripe_event(sweep, notifier, _declined())

    assert outcome == "declined"
    assert store.payments[payment_id]["status"] == "pending"
    assert store.payments[payment_id]["failure_reason"] == "Your card was declined."
    assert store.bookings[booking_id]["status"] == "pending_payment"
    assert store.audit == []
    assert notifier.sent == []


async def test_retry_after_decline_confirms_booking(store, sweep, notifier, venue_id):
    booking_id, payment_id = _pending(store, venue_id)

    assert await handle_stripe_event(sweep, notifier, _declined()) == "declined"
    outcome = await handle_stripe_event(
        sweep, notifier, _event("payment_intent.succeeded", payment_method_types=["card"])
    )

    assert outcome == "succeeded"
    assert store.payments[payment_id]["status"] == "succeeded"
    assert store.bookings[booking_id]["status"] == "confirmed"
    assert notifier.sent == [(booking_id, "guest@example.com", venue_id)]


async def test_event_after_reconciliation_is_noop(store, sweep, notifier, venue_id):
    booking_id, payment_id = _pending(store, venue_id)
    store.payments[payment_id]["status"] = "succeeded"
    store.bookings[booking_id]["status"] = "confirmed"

    outcome = await handle_stripe_event(sweep, notifier, _event("payment_intent.payment_failed"))

    assert outcome == "no_pending_payment"
    assert store.bookings[booking_id]["status"] == "confirmed"
    assert store.audit == []


async def test_unhandled_event_is_ignored(store, sweep, notifier):
    assert await handle_stripe_event(sweep, notifier, _event("charge.refunded")) == "ignored"
    assert await handle_stripe_event(sweep, notifier, _event("payment_intent.succeeded", intent_id=None)) == "ignored"


def _client(sweep, notifier, secret=WEBHOOK_SECRET):
    app.dependency_overrides[get_sweep_repository] = lambda: sweep
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_gateway] = lambda: StripeGateway(None, None, secret)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


async def test_webhook_endpoint_verifies_signature(store, sweep, notifier, venue_id):
    booking_id, _ = _pending(store, venue_id)
    payload = json.dumps(_event("payment_intent.succeeded", payment_method_types=["card"]))

    async with _client(sweep, notifier) as client:
        response = await client.post(
            "/api/v1/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": _signature(payload), "Content-Type": "application/json"},
        )

    assert response.status_code == 200, response.text
    assert response.json() == {"received": True, "outcome": "succeeded"}
    assert store.bookings[booking_id]["status"] == "confirmed"


async def test_webhook_endpoint_rejects_bad_signature(store, sweep, notifier, venue_id):
    booking_id, _ = _pending(store, venue_id)
    payload = json.dumps(_event("payment_intent.succeeded"))

    async with _client(sweep, notifier) as client:
        missing = await client.post("/api/v1/payments/webhook", content=payload)
        forged = await client.post(
            "/api/v1/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": _signature(payload, secret="whsec_other")},
        )

    assert missing.status_code == 400
    assert missing.json()["detail"] == "No signature"
    assert forged.status_code == 400
    assert forged.json()["detail"] == "Invalid signature"
    assert store.bookings[booking_id]["status"] == "pending_payment"


async def test_webhook_endpoint_without_secret(store, sweep, notifier):
    payload = json.dumps(_event("payment_intent.succeeded"))

    async with _client(sweep, notifier, secret=None) as client:
        response = await client.post(
            "/api/v1/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": _signature(payload)},
        )

    assert response.status_code == 503
