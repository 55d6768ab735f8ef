import logging

import httpx

from backend.app.core.config import settings


logger = logging.getLogger(__name__)


class EmailNotifier:
    """Fire-and-forget booking emails via the hosted email function."""

    def __init__(self, url: str | None, api_key: str | None = None, timeout: float = 10.0):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    async def send_booking_confirmation(self, booking_id: int, guest_email: str | None, venue_id: str) -> bool:
        """Return True if the email function accepted the request. Never raises."""
        if not guest_email:
            return False
        if not self.url:
            logger.info("Email function not configured; skipping confirmation for booking %s", booking_id)
            return False

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "booking_id": booking_id,
            "guest_email": guest_email,
            "venue_id": venue_id,
            "email_type": "booking_confirmation",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Confirmation email for booking %s failed: %s", booking_id, exc)
            return False

        logger.info("Confirmation email queued for booking %s", booking_id)
        return True


def notifier_from_settings() -> EmailNotifier:
    return EmailNotifier(
        url=settings.EMAIL_FUNCTION_URL,
        api_key=settings.EMAIL_FUNCTION_KEY,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
