"""Status lifecycle for prescription requests."""

from enum import Enum


class RequestStatus(str, Enum):
    """States a prescription request moves through."""
    NEW = "new"
    INFO_REQUESTED = "info_requested"
    APPROVED = "approved"
    DENIED = "denied"


# Statuses a doctor can still act on
REVIEWABLE_STATUSES = frozenset({RequestStatus.NEW, RequestStatus.INFO_REQUESTED})

TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.DENIED})

# Allowed doctor-driven transitions. Resubmission (info_requested -> new)
# happens on the patient side and is not modeled here.
TRANSITIONS = {
    RequestStatus.NEW: {RequestStatus.APPROVED, RequestStatus.DENIED, RequestStatus.INFO_REQUESTED},
    RequestStatus.INFO_REQUESTED: {RequestStatus.APPROVED, RequestStatus.DENIED, RequestStatus.INFO_REQUESTED},
    RequestStatus.APPROVED: set(),
    RequestStatus.DENIED: set(),
}

# Views that show requests in each status, refreshed after a change
STATUS_VIEWS = {
    RequestStatus.NEW: "/prescriptions/open",
    RequestStatus.INFO_REQUESTED: "/prescriptions/open",
    RequestStatus.APPROVED: "/prescriptions/approved",
    RequestStatus.DENIED: "/prescriptions/denied",
}


def can_transition(current: RequestStatus | str, target: RequestStatus | str) -> bool:
    """Check whether a doctor may move a request from current to target."""
    try:
        current = RequestStatus(current)
        target = RequestStatus(target)
    except ValueError:
        return False
    return target in TRANSITIONS[current]


def sources_for(target: RequestStatus) -> list[str]:
    """Status values from which target is reachable, for guarded updates."""
    return sorted(status.value for status, targets in TRANSITIONS.items() if target in targets)


def views_affected_by(target: RequestStatus) -> list[str]:
    """View paths to refresh after a request moves into target."""
    return list(dict.fromkeys(["/dashboard", "/prescriptions/open", STATUS_VIEWS[target]]))
