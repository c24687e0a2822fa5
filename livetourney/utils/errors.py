"""Custom exception classes for tournament runtime errors.

Provides structured error handling with error codes and admin-friendly messages.
Every error aborts the single operation that raised it; none is fatal to the
process.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for tournament runtime errors."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Lookup errors
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    TABLE_NOT_FOUND = "TABLE_NOT_FOUND"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"

    # Clock errors
    INVALID_STATE = "INVALID_STATE"

    # Seating errors
    INVALID_SEAT = "INVALID_SEAT"
    CROSS_TOURNAMENT_REFERENCE = "CROSS_TOURNAMENT_REFERENCE"
    INACTIVE_PLAYER = "INACTIVE_PLAYER"

    # Concurrency errors
    TOURNAMENT_BUSY = "TOURNAMENT_BUSY"

    # Registration errors
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"


class TournamentError(Exception):
    """Base exception for tournament runtime errors.

    Attributes:
        code: Error code for programmatic handling
        message: Admin-friendly error message
        details: Additional error details
        recoverable: Whether the caller can retry after fixing its input
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        self.code = code if isinstance(code, str) else code.value
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "errorCode": self.code,
            "errorMessage": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Lookup Errors
# =============================================================================

_NOT_FOUND_CODES = {
    "tournament": ErrorCode.TOURNAMENT_NOT_FOUND,
    "table": ErrorCode.TABLE_NOT_FOUND,
    "registration": ErrorCode.REGISTRATION_NOT_FOUND,
}


class NotFoundError(TournamentError):
    """Raised when a tournament, table or registration is missing."""

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            code=_NOT_FOUND_CODES.get(resource, ErrorCode.INVALID_REQUEST),
            message=f"{resource.capitalize()} not found: {resource_id}",
            details={"resource": resource, "id": resource_id},
            recoverable=False,
        )


# =============================================================================
# State Errors
# =============================================================================


class InvalidStateError(TournamentError):
    """Raised when a transition is not allowed from the current status."""

    def __init__(self, message: str, status: str | None = None):
        super().__init__(
            code=ErrorCode.INVALID_STATE,
            message=message,
            details={"status": status} if status else {},
            recoverable=True,
        )


class InvalidRequestError(TournamentError):
    """Raised when operation input is malformed (bad level data, bad durations)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.INVALID_REQUEST,
            message=message,
            details=details,
            recoverable=True,
        )


# =============================================================================
# Seating Errors
# =============================================================================


class InvalidSeatError(TournamentError):
    """Raised when a seat is out of range or already occupied."""

    def __init__(self, table_id: str, seat_number: int, reason: str):
        super().__init__(
            code=ErrorCode.INVALID_SEAT,
            message=f"Invalid seat {seat_number} at table {table_id}: {reason}",
            details={"tableId": table_id, "seatNumber": seat_number, "reason": reason},
            recoverable=True,
        )


class CrossTournamentReferenceError(TournamentError):
    """Raised when a table and a registration belong to different tournaments."""

    def __init__(self, table_id: str, tournament_id: str):
        super().__init__(
            code=ErrorCode.CROSS_TOURNAMENT_REFERENCE,
            message="Table belongs to different tournament",
            details={"tableId": table_id, "tournamentId": tournament_id},
            recoverable=False,
        )


class InactivePlayerError(TournamentError):
    """Raised when mutating the seat of a registration that is not REGISTERED."""

    def __init__(self, registration_id: str):
        super().__init__(
            code=ErrorCode.INACTIVE_PLAYER,
            message="Player is not active",
            details={"registrationId": registration_id},
            recoverable=False,
        )


# =============================================================================
# Registration Errors
# =============================================================================


class DuplicateRegistrationError(TournamentError):
    """Raised when a player registers twice for the same tournament."""

    def __init__(self, player_id: str, tournament_id: str):
        super().__init__(
            code=ErrorCode.ALREADY_REGISTERED,
            message="Player already registered",
            details={"playerId": player_id, "tournamentId": tournament_id},
            recoverable=True,
        )


class RegistrationClosedError(TournamentError):
    """Raised when registering into a tournament whose registration is closed."""

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.REGISTRATION_CLOSED,
            message="Registration closed",
            details={"tournamentId": tournament_id},
            recoverable=True,
        )
