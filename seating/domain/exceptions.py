

class SeatingError(Exception):
    """
    Base exception for all domain-level errors
    inside the seating engine.
    """


class SeatNotFoundError(SeatingError):
    """Raised when a seat, an order or an event's seat set does not exist."""


class InvalidSeatRequestError(SeatingError):
    """Raised for malformed input, e.g. a seat set spanning several events."""


class SeatConflictError(SeatingError):
    """
    Raised when seats are not in the state an operation requires,
    or were modified by a concurrent writer.
    """

    def __init__(self, message: str, seat_numbers: list[str] | None = None):
        self.seat_numbers = list(seat_numbers or [])
        super().__init__(message)


class InvalidStateTransitionError(SeatConflictError):
    """
    Raised when an illegal seat state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class SeatingInternalError(SeatingError):
    """Raised when the seat store or the hold cache fails."""
