"""
Trip status state machine.

    ongoing ──► completed        (settlement)
            ├─► ended_manually
            └─► cancelled
"""
from fleetdesk.services.errors import InvalidTripTransition

ONGOING = "ongoing"
COMPLETED = "completed"
ENDED_MANUALLY = "ended_manually"
CANCELLED = "cancelled"

VALID_TRANSITIONS: dict[str, set[str]] = {
    ONGOING: {COMPLETED, ENDED_MANUALLY, CANCELLED},
    COMPLETED: set(),
    ENDED_MANUALLY: set(),
    CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_valid_transition(current: str, next_status: str) -> bool:
    return next_status in VALID_TRANSITIONS.get(current, set())


def ensure_transition(current: str, next_status: str) -> None:
    if not is_valid_transition(current, next_status):
        raise InvalidTripTransition(current, next_status)
