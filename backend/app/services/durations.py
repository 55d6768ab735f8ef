import logging

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import settings
from backend.app.db.repositories import VenueRepository
from backend.app.domain.durations import DurationRule, resolve_duration, validate_duration_rules


logger = logging.getLogger(__name__)

WALK_IN_DURATION_KEY = "walk_in_duration"


async def calculate_booking_duration(
    repo: VenueRepository,
    service_id: str | None,
    party_size: int,
) -> int:
    """Duration in minutes for ``party_size`` guests under the service's rules."""
    default = settings.DEFAULT_BOOKING_DURATION
    if not service_id:
        return default

    try:
        rules = await repo.fetch_duration_rules(service_id)
    except SQLAlchemyError:
        logger.exception("Failed to load duration rules for service %s, using default", service_id)
        return default

    if not rules:
        logger.debug("No duration rules for service %s, using default %s", service_id, default)
        return default

    duration = resolve_duration(rules, party_size, default)
    logger.debug("Duration for %s guests on service %s: %s minutes", party_size, service_id, duration)
    return duration


async def default_walk_in_duration(repo: VenueRepository) -> int:
    default = settings.DEFAULT_BOOKING_DURATION
    try:
        value = await repo.fetch_setting(WALK_IN_DURATION_KEY)
    except SQLAlchemyError:
        logger.exception("Failed to load walk-in duration for venue %s", repo.venue_id)
        return default

    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return int(value)


class ServiceNotFound(LookupError):
    pass


async def save_duration_rules(repo: VenueRepository, service_id: str, rules: list[DurationRule]) -> None:
    """Validate and store a service's duration rules.

    Raises ``DurationRuleError`` for inconsistent rules and ``ServiceNotFound``
    when the service does not belong to the venue.
    """
    max_guests = await repo.fetch_service_guest_limit(service_id)
    if max_guests is None:
        raise ServiceNotFound(service_id)

    validate_duration_rules(rules, max_guests)
    if not await repo.update_duration_rules(service_id, rules):
        raise ServiceNotFound(service_id)
    logger.info("Stored %s duration rules for service %s (venue %s)", len(rules), service_id, repo.venue_id)
