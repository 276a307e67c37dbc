"""Conversion of reservations into permanent participant registrations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.utils import as_utc, utcnow
from ..exceptions import DrawingNotFound, ReservationExpiredOrTaken, ValidationError
from ..models import Drawing, Eligibility, NumberSlot, Participant, SlotStatus

logger = logging.getLogger(__name__)


@dataclass
class ParticipantDraft:
    """Registration form data submitted by a participant."""

    name: str
    phone: str
    email: Optional[str] = None

    def cleaned(self) -> "ParticipantDraft":
        """Return a stripped copy, raising :class:`ValidationError` on bad input."""

        name = (self.name or "").strip()
        phone = (self.phone or "").strip()
        email = (self.email or "").strip() or None
        if not name:
            raise ValidationError("Name is required")
        if len(name) > 255:
            raise ValidationError("Name must be at most 255 characters")
        if not phone:
            raise ValidationError("Phone is required")
        if len(phone) > 50:
            raise ValidationError("Phone must be at most 50 characters")
        if email is not None and (len(email) > 255 or "@" not in email):
            raise ValidationError("Email is not valid")
        return ParticipantDraft(name=name, phone=phone, email=email)


class ParticipationConfirmer:
    """Creates participants and binds their reserved numbers in one unit of work."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def confirm(
        self,
        drawing_id: str,
        numbers: Optional[Sequence[int]],
        draft: ParticipantDraft,
        *,
        holder: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Participant:
        """Register a participant for ``drawing_id``.

        Parameters
        ----------
        drawing_id : str
            Drawing to join.
        numbers : Optional[Sequence[int]]
            Reserved numbers to confirm. Required for drawings played with
            numbers; must be empty for numberless drawings.
        draft : ParticipantDraft
            Registration form data.
        holder : Optional[str], default: None
            When given, each reservation must belong to this holder.
        now : Optional[datetime], default: None
            Reference time for reservation liveness. Defaults to the current
            UTC time.

        Returns
        -------
        Participant
            The flushed participant. Paid drawings register participants as
            ``PENDING``; free drawings approve them immediately.

        Notes
        -----
        The participant insert and every slot update run inside one
        SAVEPOINT. If any number is no longer reserved (lapsed, released or
        taken by someone else) the savepoint is rolled back, so neither the
        participant row nor any slot change survives.

        Raises
        ------
        ReservationExpiredOrTaken
            If a requested number has no live reservation for the caller.
        ValidationError
            If the draft or the number list is invalid.
        DrawingNotFound
            If the drawing does not exist.
        """

        cleaned = draft.cleaned()
        ref = as_utc(now) or utcnow()

        drawing = self._session.get(Drawing, drawing_id)
        if drawing is None:
            raise DrawingNotFound(drawing_id)
        requested = self._validate_numbers(drawing, numbers)

        with self._session.begin_nested():
            participant = Participant(
                drawing_id=drawing_id,
                name=cleaned.name,
                phone=cleaned.phone,
                email=cleaned.email,
                eligibility=(
                    Eligibility.PENDING if drawing.is_paid else Eligibility.APPROVED
                ),
                created_at=ref,
            )
            if drawing.play_with_numbers:
                participant.selected_number = requested[0]
            else:
                participant.selected_number = self._next_entry_number(drawing_id)
            self._session.add(participant)
            self._session.flush()

            for number in requested:
                result = self._session.execute(
                    update(NumberSlot)
                    .where(
                        NumberSlot.drawing_id == drawing_id,
                        NumberSlot.number == number,
                        NumberSlot.live_reservation_clause(ref, holder),
                    )
                    .values(
                        status=SlotStatus.TAKEN,
                        participant_id=participant.id,
                        reserved_by=None,
                        expires_at=None,
                        updated_at=ref,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    logger.info(
                        "Confirmation for drawing %s aborted: number %s not reserved",
                        drawing_id,
                        number,
                    )
                    raise ReservationExpiredOrTaken(drawing_id, number)

        logger.info(
            "Participant %s joined drawing %s with number(s) %s",
            participant.id,
            drawing_id,
            requested or [participant.selected_number],
        )
        return participant

    def _validate_numbers(
        self, drawing: Drawing, numbers: Optional[Sequence[int]]
    ) -> list[int]:
        requested = list(numbers or [])
        if not drawing.play_with_numbers:
            if requested:
                raise ValidationError("Drawing does not play with numbers")
            return []

        if not requested:
            raise ValidationError("At least one number must be selected")
        if len(set(requested)) != len(requested):
            raise ValidationError("Numbers must not repeat")
        for number in requested:
            if isinstance(number, bool) or not isinstance(number, int):
                raise ValidationError(f"Invalid number: {number!r}")
            if not 1 <= number <= drawing.quantity_of_numbers:
                raise ValidationError(f"Number {number} does not exist in this drawing")
        return requested

    def _next_entry_number(self, drawing_id: str) -> int:
        """Hand out the next entry number of a numberless drawing.

        The increment is a single ``UPDATE`` on the drawing row, which holds
        the row lock until the surrounding transaction ends; concurrent
        registrations queue behind it instead of reading the same maximum.
        """

        self._session.execute(
            update(Drawing)
            .where(Drawing.id == drawing_id)
            .values(entry_counter=Drawing.entry_counter + 1)
            .execution_options(synchronize_session=False)
        )
        return self._session.scalar(
            select(Drawing.entry_counter).where(Drawing.id == drawing_id)
        )


__all__ = ["ParticipantDraft", "ParticipationConfirmer"]
