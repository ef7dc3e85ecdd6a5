# tests/unit/test_state_machine.py

import pytest

from seating.domain.state_machine import SeatStateMachine, SeatStatus
from seating.domain.exceptions import InvalidStateTransitionError, SeatConflictError


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_valid_hold_lifecycle():
    assert SeatStateMachine.can_transition(
        SeatStatus.AVAILABLE,
        SeatStatus.RESERVED,
    )

    assert SeatStateMachine.can_transition(
        SeatStatus.RESERVED,
        SeatStatus.ALLOCATED,
    )

    assert SeatStateMachine.can_transition(
        SeatStatus.RESERVED,
        SeatStatus.AVAILABLE,
    )


def test_block_cycle():
    assert SeatStateMachine.can_transition(SeatStatus.AVAILABLE, SeatStatus.BLOCKED)
    assert SeatStateMachine.can_transition(SeatStatus.BLOCKED, SeatStatus.AVAILABLE)


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_cannot_allocate_without_hold():
    with pytest.raises(InvalidStateTransitionError):
        SeatStateMachine.validate_transition(
            SeatStatus.AVAILABLE,
            SeatStatus.ALLOCATED,
        )


@pytest.mark.parametrize(
    "status",
    [SeatStatus.RESERVED, SeatStatus.ALLOCATED, SeatStatus.BLOCKED],
)
def test_only_available_seats_can_be_reserved(status):
    assert not SeatStateMachine.can_transition(status, SeatStatus.RESERVED)


def test_allocated_seat_cannot_be_reallocated():
    assert SeatStateMachine.can_transition(SeatStatus.ALLOCATED, SeatStatus.AVAILABLE)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        SeatStateMachine.validate_transition(
            SeatStatus.ALLOCATED,
            SeatStatus.ALLOCATED,
        )
    assert exc_info.value.from_state == "ALLOCATED"


def test_illegal_transition_is_a_conflict():
    with pytest.raises(SeatConflictError):
        SeatStateMachine.validate_transition(SeatStatus.BLOCKED, SeatStatus.RESERVED)


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        SeatStateMachine.validate_transition(
            "AVAILABLE",  # invalid type
            SeatStatus.RESERVED,
        )
