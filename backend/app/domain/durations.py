from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

DEFAULT_DURATION_MINUTES = 120


@dataclass(frozen=True)
class DurationRule:
    min_guests: int
    max_guests: int
    duration_minutes: int

    def matches(self, party_size: int) -> bool:
        return self.min_guests <= party_size <= self.max_guests


class DurationRuleError(ValueError):
    """Raised when a service's duration rules are inconsistent."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


def parse_duration_rules(data: Any) -> list[DurationRule]:
    """Build rules from the stored JSON list, dropping malformed entries.

    Accepts both the camelCase keys written by the admin UI
    (``minGuests``/``maxGuests``/``duration``) and snake_case keys.
    """
    if not isinstance(data, list):
        return []

    rules: list[DurationRule] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        min_guests = item.get("minGuests", item.get("min_guests"))
        max_guests = item.get("maxGuests", item.get("max_guests"))
        duration = item.get("duration", item.get("duration_minutes"))
        values = (min_guests, max_guests, duration)
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            continue
        rules.append(DurationRule(min_guests, max_guests, duration))
    return rules


def resolve_duration(
    rules: Iterable[DurationRule] | None,
    party_size: int,
    default: int = DEFAULT_DURATION_MINUTES,
) -> int:
    """Return the duration of the first rule covering ``party_size``."""
    for rule in rules or ():
        if rule.matches(party_size):
            return rule.duration_minutes
    return default


def validate_duration_rules(rules: Sequence[DurationRule], service_max_guests: int | None = None) -> None:
    """Reject rule sets whose first-match result would depend on list order."""
    problems: list[str] = []
    for index, rule in enumerate(rules):
        if rule.duration_minutes <= 0:
            problems.append(f"rule {index}: duration must be positive")
        if rule.min_guests < 1:
            problems.append(f"rule {index}: minimum guests must be at least 1")
        if rule.min_guests > rule.max_guests:
            problems.append(f"rule {index}: minimum guests exceeds maximum guests")
        if service_max_guests is not None and rule.max_guests > service_max_guests:
            problems.append(f"rule {index}: maximum guests exceeds service limit of {service_max_guests}")

    ordered = sorted(enumerate(rules), key=lambda pair: pair[1].min_guests)
    for (prev_index, prev), (index, rule) in zip(ordered, ordered[1:]):
        if rule.min_guests <= prev.max_guests:
            problems.append(f"rules {prev_index} and {index} overlap")

    if problems:
        raise DurationRuleError(problems)
