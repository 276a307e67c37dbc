"""Number slot storage and reservations."""

from .reservations import BulkReservation, Reservation, ReservationManager
from .store import DrawingStats, SlotInfo, SlotPage, SlotStore

__all__ = [
    "BulkReservation",
    "DrawingStats",
    "Reservation",
    "ReservationManager",
    "SlotInfo",
    "SlotPage",
    "SlotStore",
]
