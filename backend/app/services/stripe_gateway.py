import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import stripe

from backend.app.core.config import settings


logger = logging.getLogger(__name__)


class ProcessorNotConfigured(RuntimeError):
    """Raised when no Stripe key exists for the requested mode."""


@dataclass(frozen=True)
class IntentStatus:
    id: str
    status: str
    payment_method_types: list[str] = field(default_factory=list)

    @property
    def payment_method_type(self) -> str | None:
        return self.payment_method_types[0] if self.payment_method_types else None


class StripeGateway:
    """Read-only access to payment intents, keyed per venue mode."""

    def __init__(
        self,
        live_secret_key: str | None,
        test_secret_key: str | None,
        webhook_secret: str | None = None,
    ):
        self.live_secret_key = live_secret_key
        self.test_secret_key = test_secret_key
        self.webhook_secret = webhook_secret

    def api_key(self, test_mode: bool) -> str:
        key = self.test_secret_key if test_mode else self.live_secret_key
        if not key:
            mode = "test" if test_mode else "live"
            raise ProcessorNotConfigured(f"No Stripe {mode} secret key configured")
        return key

    async def retrieve_intent(self, payment_intent_id: str, *, test_mode: bool) -> IntentStatus:
        api_key = self.api_key(test_mode)
        # The SDK call blocks; keep it off the event loop.
        intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_intent_id, api_key=api_key)
        return IntentStatus(
            id=intent.id,
            status=intent.status,
            payment_method_types=list(getattr(intent, "payment_method_types", None) or []),
        )

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and return the event as plain JSON.

        Raises ``stripe.SignatureVerificationError`` on a bad signature.
        """
        if not self.webhook_secret:
            raise ProcessorNotConfigured("No Stripe webhook secret configured")
        stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        return json.loads(payload)


def gateway_from_settings() -> StripeGateway:
    return StripeGateway(
        live_secret_key=settings.STRIPE_SECRET_KEY,
        test_secret_key=settings.STRIPE_TEST_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    )
