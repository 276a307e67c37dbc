from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .drawing import Drawing, SelectionState, WinnerSelection  # noqa: F401
from .participant import Eligibility, Participant  # noqa: F401
from .slot import NumberSlot, SlotStatus  # noqa: F401
from .winner import DrawingWinner  # noqa: F401

__all__ = [
    "Base",
    "Drawing",
    "DrawingWinner",
    "Eligibility",
    "NumberSlot",
    "Participant",
    "SelectionState",
    "SlotStatus",
    "WinnerSelection",
]
