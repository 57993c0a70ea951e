"""
Service identifier pattern matching.
"""

from typing import FrozenSet

from .models import ServiceIdentifier, WILDCARD


def _field_matches(pattern_value: str, service_value: str) -> bool:
    return pattern_value == WILDCARD or pattern_value == service_value


def _intersects(pattern_values: FrozenSet[str], service_values: FrozenSet[str]) -> bool:
    # An empty pattern set places no constraint
    if not pattern_values:
        return True
    return not pattern_values.isdisjoint(service_values)


def matches(pattern: ServiceIdentifier, service: ServiceIdentifier) -> bool:
    """Decide whether ``service`` satisfies ``pattern``.

    Type and provider match exactly unless the pattern uses ``*``. Tags and
    environments need at least one value in common when the pattern names any.
    """
    return (
        _field_matches(pattern.type, service.type)
        and _field_matches(pattern.provider, service.provider)
        and _intersects(pattern.tags, service.tags)
        and _intersects(pattern.environment, service.environment)
    )


def matches_any(pattern: ServiceIdentifier, *services: ServiceIdentifier) -> bool:
    return any(matches(pattern, service) for service in services)
