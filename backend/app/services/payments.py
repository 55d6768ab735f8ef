import logging

from sqlalchemy.exc import SQLAlchemyError

from backend.app.db.repositories import VenueRepository
from backend.app.domain.payments import CALCULATION_ERROR, PaymentCalculation, calculate_charge


logger = logging.getLogger(__name__)


async def calculate_payment_amount(
    repo: VenueRepository,
    service_id: str | None,
    party_size: int,
) -> PaymentCalculation:
    """Work out whether a booking is charged and how much.

    A failed lookup yields ``charge_type='error'`` with ``should_charge=False``.
    """
    try:
        venue = await repo.fetch_venue_settings()
        service = await repo.fetch_service_settings(service_id) if service_id else None
    except SQLAlchemyError:
        logger.exception("Payment settings lookup failed for venue %s service %s", repo.venue_id, service_id)
        return CALCULATION_ERROR

    result = calculate_charge(service, venue, party_size, service_requested=bool(service_id))
    logger.debug(
        "Payment calculation for venue %s service %s party %s: %s",
        repo.venue_id,
        service_id,
        party_size,
        result,
    )
    return result
