"""Participant registration and review."""

from .confirmer import ParticipantDraft, ParticipationConfirmer
from .eligibility import EligibilityManager, coerce_eligibility

__all__ = [
    "EligibilityManager",
    "ParticipantDraft",
    "ParticipationConfirmer",
    "coerce_eligibility",
]
