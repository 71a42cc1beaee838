"""Lifecycle statuses and legal transition tables for trips, requests and matches."""

from enum import Enum

from app.errors import InvalidStateTransition


class TripStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    AIRBORNE = "airborne"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RequestStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    MARKETPLACE = "marketplace"
    MATCHED = "matched"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class MatchStatus(str, Enum):
    PROPOSED = "proposed"  # ephemeral, never persisted
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class CapacityBucket(str, Enum):
    CARRY_ON = "carry_on"
    CHECKED = "checked"


TRIP_TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    TripStatus.PENDING: frozenset({TripStatus.ACTIVE, TripStatus.CANCELLED}),
    TripStatus.ACTIVE: frozenset({TripStatus.AIRBORNE, TripStatus.CANCELLED}),
    TripStatus.AIRBORNE: frozenset({TripStatus.ARRIVED}),
    TripStatus.ARRIVED: frozenset({TripStatus.COMPLETED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({
        RequestStatus.PUBLISHED, RequestStatus.MARKETPLACE, RequestStatus.CANCELLED,
    }),
    RequestStatus.PUBLISHED: frozenset({RequestStatus.MATCHED, RequestStatus.CANCELLED}),
    RequestStatus.MARKETPLACE: frozenset({RequestStatus.MATCHED, RequestStatus.CANCELLED}),
    RequestStatus.MATCHED: frozenset({
        RequestStatus.PUBLISHED,
        RequestStatus.MARKETPLACE,
        RequestStatus.FULFILLED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.FULFILLED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

MATCH_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.PROPOSED: frozenset({MatchStatus.PENDING}),
    MatchStatus.PENDING: frozenset({
        MatchStatus.ACCEPTED,
        MatchStatus.DECLINED,
        MatchStatus.EXPIRED,
        MatchStatus.CANCELLED,
    }),
    MatchStatus.ACCEPTED: frozenset({MatchStatus.CANCELLED}),
    MatchStatus.DECLINED: frozenset(),
    MatchStatus.EXPIRED: frozenset(),
    MatchStatus.CANCELLED: frozenset(),
}

# Statuses that hold a capacity reservation on the trip
LIVE_MATCH_STATUSES: frozenset[MatchStatus] = frozenset({MatchStatus.PENDING, MatchStatus.ACCEPTED})

# Trip statuses visible to the candidate finder; only ACTIVE is bookable
DISCOVERABLE_TRIP_STATUSES: frozenset[TripStatus] = frozenset({TripStatus.PENDING, TripStatus.ACTIVE})

BOOKABLE_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PUBLISHED, RequestStatus.MARKETPLACE,
})

_TABLES = {
    "trip": TRIP_TRANSITIONS,
    "request": REQUEST_TRANSITIONS,
    "match": MATCH_TRANSITIONS,
}


def can_transition(entity: str, current: str, target: str) -> bool:
    table = _TABLES[entity]
    status_type = type(next(iter(table)))
    try:
        return status_type(target) in table[status_type(current)]
    except ValueError:
        return False


def sources_for(entity: str, target: str) -> list[str]:
    """All statuses from which ``target`` is reachable in one step."""
    table = _TABLES[entity]
    return sorted(s.value for s, allowed in table.items() if any(t.value == target for t in allowed))


def ensure_transition(entity: str, current: str, target: str, **context) -> None:
    """Raise InvalidStateTransition unless ``current -> target`` is in the table."""
    current = getattr(current, "value", current)
    target = getattr(target, "value", target)
    if not can_transition(entity, current, target):
        raise InvalidStateTransition(entity, current, target, **context)
