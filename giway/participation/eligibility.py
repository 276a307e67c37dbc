"""Host review of participants (approve, reject, reset to pending)."""

from __future__ import annotations

import logging
from typing import Optional, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..db.utils import utcnow
from ..exceptions import Forbidden, ParticipantNotFound, ValidationError
from ..models import Eligibility, NumberSlot, Participant, SlotStatus
from ..slots.store import SlotStore

logger = logging.getLogger(__name__)


def coerce_eligibility(status: Union[Eligibility, str]) -> Eligibility:
    try:
        return Eligibility(status)
    except ValueError:
        raise ValidationError(
            "Invalid status. Must be one of: pending, approved, rejected"
        ) from None


class EligibilityManager:
    def __init__(self, session: Session) -> None:
        self._session = session

    def set_eligibility(
        self,
        participant_id: int,
        status: Union[Eligibility, str],
        *,
        acting_user_id: Optional[str] = None,
    ) -> Participant:
        """Change the review state of a participant.

        Rejecting a participant returns every slot they hold to the pool and
        appends the released numbers to ``log_numbers``; both happen inside
        one SAVEPOINT. When ``acting_user_id`` is given it must be the owner
        of the participant's drawing.
        """

        new_status = coerce_eligibility(status)
        participant = Participant.get_by_id(self._session, participant_id)
        if participant is None:
            raise ParticipantNotFound(participant_id)
        if acting_user_id is not None and not participant.drawing.is_owned_by(
            acting_user_id
        ):
            raise Forbidden(
                "You do not have permission to update this participant"
            )

        with self._session.begin_nested():
            if new_status is Eligibility.REJECTED:
                released = self._release_slots(participant)
                if released:
                    participant.log_numbers = list(participant.log_numbers or []) + released
            participant.eligibility = new_status
            self._session.flush()

        logger.info(
            "Participant %s of drawing %s set to %s",
            participant.id,
            participant.drawing_id,
            new_status.value,
        )
        return participant

    def _release_slots(self, participant: Participant) -> list[int]:
        numbers = SlotStore(self._session).participant_numbers(
            participant.drawing_id, participant.id
        )
        if not numbers:
            return []
        self._session.execute(
            update(NumberSlot)
            .where(
                NumberSlot.drawing_id == participant.drawing_id,
                NumberSlot.participant_id == participant.id,
                NumberSlot.status == SlotStatus.TAKEN,
                NumberSlot.number.in_(numbers),
            )
            .values(
                status=SlotStatus.AVAILABLE,
                participant_id=None,
                reserved_by=None,
                reserved_at=None,
                expires_at=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Released numbers %s of rejected participant %s", numbers, participant.id
        )
        return numbers


__all__ = ["EligibilityManager", "coerce_eligibility"]
