"""Utility modules."""

from livetourney.utils.errors import (
    CrossTournamentReferenceError,
    DuplicateRegistrationError,
    ErrorCode,
    InactivePlayerError,
    InvalidRequestError,
    InvalidSeatError,
    InvalidStateError,
    NotFoundError,
    RegistrationClosedError,
    TournamentError,
)

__all__ = [
    "CrossTournamentReferenceError",
    "DuplicateRegistrationError",
    "ErrorCode",
    "InactivePlayerError",
    "InvalidRequestError",
    "InvalidSeatError",
    "InvalidStateError",
    "NotFoundError",
    "RegistrationClosedError",
    "TournamentError",
]
