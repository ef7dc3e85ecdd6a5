# seating/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from seating.domain.exceptions import InvalidStateTransitionError


class SeatStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    ALLOCATED = "ALLOCATED"
    BLOCKED = "BLOCKED"


class SeatType(str, Enum):
    VIP = "VIP"
    PREMIUM = "PREMIUM"
    REGULAR = "REGULAR"
    ECONOMY = "ECONOMY"


class SeatStateMachine:
    """
    Legal seat transitions for the guarded operations (reserve, allocate).

    Release, block and unblock are administrative overrides and do not
    consult this table.
    """

    _ALLOWED_TRANSITIONS: Dict[SeatStatus, Set[SeatStatus]] = {
        SeatStatus.AVAILABLE: {
            SeatStatus.RESERVED,
            SeatStatus.BLOCKED,
        },
        SeatStatus.RESERVED: {
            SeatStatus.ALLOCATED,
            SeatStatus.AVAILABLE,
        },
        SeatStatus.ALLOCATED: {
            SeatStatus.AVAILABLE,
        },
        SeatStatus.BLOCKED: {
            SeatStatus.AVAILABLE,
        },
    }

    @classmethod
    def can_transition(
        cls,
        from_status: SeatStatus,
        to_status: SeatStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: SeatStatus,
        to_status: SeatStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @staticmethod
    def _ensure_valid_status(status: SeatStatus) -> None:
        if not isinstance(status, SeatStatus):
            raise TypeError(
                f"Expected SeatStatus, got {type(status)}"
            )
