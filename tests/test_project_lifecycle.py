import pytest

from capstone.core.errors import ConflictError
from capstone.services import project_lifecycle as lifecycle


@pytest.mark.parametrize("current,target", [
    ("pending", "approved"),
    ("pending", "rejected"),
    ("rejected", "pending"),
    ("approved", "active"),
    ("approved", "completed"),
    ("active", "inactive"),
    ("active", "completed"),
    ("inactive", "active"),
])
def test_allowed_transitions(current, target):
    assert lifecycle.can_transition(current, target)
    lifecycle.ensure_transition(current, target)


@pytest.mark.parametrize("current,target", [
    ("pending", "active"),
    ("pending", "completed"),
    ("rejected", "approved"),
    ("inactive", "completed"),
    ("completed", "active"),
    ("completed", "pending"),
    ("approved", "pending"),
])
def test_rejected_transitions(current, target):
    assert not lifecycle.can_transition(current, target)
    with pytest.raises(ConflictError) as exc_info:
        lifecycle.ensure_transition(current, target)
    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
    assert exc_info.value.details["current_status"] == current


def test_completed_is_terminal():
    for status in lifecycle.ALL_STATUSES:
        assert not lifecycle.can_transition(lifecycle.COMPLETED, status)


def test_toggle_target():
    assert lifecycle.toggle_target("approved") == "active"
    assert lifecycle.toggle_target("active") == "inactive"
    assert lifecycle.toggle_target("inactive") == "active"
    for status in ("pending", "rejected", "completed"):
        with pytest.raises(ConflictError):
            lifecycle.toggle_target(status)


def test_status_after_edit():
    assert lifecycle.status_after_edit("rejected") == "pending"
    assert lifecycle.status_after_edit("pending") == "pending"


def test_visibility_and_ownership_rules():
    assert lifecycle.is_public("approved") and lifecycle.is_public("active")
    assert not any(lifecycle.is_public(s) for s in ("pending", "rejected", "inactive", "completed"))
    assert lifecycle.owner_can_modify("pending") and lifecycle.owner_can_modify("rejected")
    assert not lifecycle.owner_can_modify("approved")
