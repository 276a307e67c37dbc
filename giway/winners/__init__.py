"""Winner selection and result reads."""

from .sampling import default_rng, draw_without_replacement
from .selector import (
    SelectedWinner,
    WinnerInfo,
    WinnerSelectionResult,
    WinnerSelector,
    WinnersView,
)

__all__ = [
    "SelectedWinner",
    "WinnerInfo",
    "WinnerSelectionResult",
    "WinnerSelector",
    "WinnersView",
    "default_rng",
    "draw_without_replacement",
]
