"""Exceptions raised by the reservation and winner selection engine.

Every class except :class:`PersistenceError` describes an expected,
user-facing outcome that the web layer maps to a response.
"""

from __future__ import annotations

from typing import Optional


class GiwayError(Exception):
    """Base exception for all engine errors."""


class ValidationError(GiwayError, ValueError):
    """Raised when request data is malformed or out of range."""


class DrawingNotFound(GiwayError, LookupError):
    def __init__(self, drawing_id: str) -> None:
        super().__init__(f"Drawing {drawing_id} not found")
        self.drawing_id = drawing_id


class ParticipantNotFound(GiwayError, LookupError):
    def __init__(self, participant_id: int) -> None:
        super().__init__(f"Participant {participant_id} not found")
        self.participant_id = participant_id


class SlotUnavailable(GiwayError):
    """Raised when a number is taken or held by a live reservation."""

    def __init__(self, drawing_id: str, number: int) -> None:
        super().__init__(f"Number {number} is not available")
        self.drawing_id = drawing_id
        self.number = number


class ReservationExpiredOrTaken(GiwayError):
    """Raised when a number can no longer be confirmed for the caller."""

    def __init__(self, drawing_id: str, number: int) -> None:
        super().__init__(
            f"Reservation for number {number} not found or already expired"
        )
        self.drawing_id = drawing_id
        self.number = number


class DrawingNotEnded(GiwayError):
    def __init__(self, drawing_id: str, end_at_iso: Optional[str]) -> None:
        super().__init__(f"Drawing has not ended yet. Ends at {end_at_iso}")
        self.drawing_id = drawing_id
        self.end_at = end_at_iso


class Forbidden(GiwayError):
    """Raised when the acting user does not own the drawing."""


class InvalidWinnerNumber(GiwayError):
    """Raised when a manually supplied winner number cannot be accepted."""

    def __init__(self, message: str, number: Optional[int] = None) -> None:
        super().__init__(message)
        self.number = number


class InsufficientEligibleParticipants(GiwayError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Cannot select {required} winners from {available} eligible entries"
        )
        self.required = required
        self.available = available


class PersistenceError(GiwayError):
    """Raised when the database fails unexpectedly. Never retried by the engine."""


__all__ = [
    "DrawingNotEnded",
    "DrawingNotFound",
    "Forbidden",
    "GiwayError",
    "InsufficientEligibleParticipants",
    "InvalidWinnerNumber",
    "ParticipantNotFound",
    "PersistenceError",
    "ReservationExpiredOrTaken",
    "SlotUnavailable",
    "ValidationError",
]
