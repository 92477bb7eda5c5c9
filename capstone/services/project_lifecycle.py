"""
Project Lifecycle - status state machine for capstone projects.

    pending  -> approved | rejected      (admin review)
    rejected -> pending                  (owner edits and resubmits)
    approved -> active | completed
    active   -> inactive | completed
    inactive -> active
    completed is terminal
"""

from typing import Dict, FrozenSet

from capstone.core.errors import ConflictError

PENDING = "pending"
APPROVED = "approved"
ACTIVE = "active"
INACTIVE = "inactive"
REJECTED = "rejected"
COMPLETED = "completed"

ALL_STATUSES = (PENDING, APPROVED, ACTIVE, INACTIVE, REJECTED, COMPLETED)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({APPROVED, REJECTED}),
    REJECTED: frozenset({PENDING}),
    APPROVED: frozenset({ACTIVE, COMPLETED}),
    ACTIVE: frozenset({INACTIVE, COMPLETED}),
    INACTIVE: frozenset({ACTIVE}),
    COMPLETED: frozenset(),
}

# open to browsing, interests and favorites
PUBLIC_STATUSES = (APPROVED, ACTIVE)
# the owning client may still edit or delete
OWNER_EDITABLE_STATUSES = (PENDING, REJECTED)
# a new phase may hang off these
PHASE_PARENT_STATUSES = (APPROVED, ACTIVE, COMPLETED)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    """Raise 409 INVALID_STATUS_TRANSITION unless current -> target is allowed."""
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot change project status from '{current}' to '{target}'",
            code="INVALID_STATUS_TRANSITION",
            details={
                "current_status": current,
                "requested_status": target,
                "allowed": sorted(TRANSITIONS.get(current, ())),
            }
        )


def toggle_target(current: str) -> str:
    """Status reached by the admin active/inactive toggle."""
    target = INACTIVE if current == ACTIVE else ACTIVE
    ensure_transition(current, target)
    return target


def status_after_edit(current: str) -> str:
    """Editing a rejected project resubmits it for review."""
    return PENDING if current == REJECTED else current


def is_public(status: str) -> bool:
    return status in PUBLIC_STATUSES


def owner_can_modify(status: str) -> bool:
    return status in OWNER_EDITABLE_STATUSES
