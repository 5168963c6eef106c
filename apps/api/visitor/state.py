# apps/api/visitor/state.py

from apps.api.visitor.schema import VisitorStatus

TRANSITIONS: dict[VisitorStatus, frozenset[VisitorStatus]] = {
    VisitorStatus.PENDING: frozenset({VisitorStatus.APPROVED, VisitorStatus.REJECTED}),
    VisitorStatus.APPROVED: frozenset({VisitorStatus.ENTERED}),
    VisitorStatus.ENTERED: frozenset({VisitorStatus.EXITED}),
    VisitorStatus.REJECTED: frozenset(),
    VisitorStatus.EXITED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)

# Audit column written alongside each target status: (actor column, time column)
AUDIT_FIELDS: dict[VisitorStatus, tuple[str | None, str]] = {
    VisitorStatus.APPROVED: ("approved_by", "approved_at"),
    VisitorStatus.REJECTED: ("rejected_by", "rejected_at"),
    VisitorStatus.ENTERED: (None, "entered_at"),
    VisitorStatus.EXITED: (None, "exited_at"),
}


def can_transition(current: VisitorStatus | str, new: VisitorStatus | str) -> bool:
    return VisitorStatus(new) in TRANSITIONS[VisitorStatus(current)]


def is_terminal(status: VisitorStatus | str) -> bool:
    return VisitorStatus(status) in TERMINAL_STATUSES
