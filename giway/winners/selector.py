"""Winner selection for ended drawings."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..db.utils import as_utc, dt_iso, utcnow
from ..exceptions import (
    DrawingNotEnded,
    DrawingNotFound,
    Forbidden,
    InsufficientEligibleParticipants,
    InvalidWinnerNumber,
    ValidationError,
)
from ..models import (
    Drawing,
    DrawingWinner,
    Eligibility,
    NumberSlot,
    Participant,
    SlotStatus,
    WinnerSelection,
)
from .sampling import draw_without_replacement

logger = logging.getLogger(__name__)


@dataclass
class SelectedWinner:
    participant_id: int
    participant_name: str
    winning_number: Optional[int] = None


@dataclass
class WinnerSelectionResult:
    """Outcome of one selection run, as persisted."""

    drawing_id: str
    winners: list[SelectedWinner]
    winner_numbers: Optional[list[int]]
    selection_method: WinnerSelection
    selected_at: datetime


@dataclass
class WinnerInfo:
    participant_id: int
    participant_name: str
    participant_email: Optional[str]
    participant_phone: str
    winning_number: Optional[int]
    selected_at: datetime


@dataclass
class WinnersView:
    winners: list[WinnerInfo]
    winner_numbers: Optional[list[int]]
    selection_method: WinnerSelection


class WinnerSelector:
    """Selects and persists the winners of a drawing.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session used for lookups and persistence.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def select(
        self,
        drawing_id: str,
        acting_user_id: Optional[str],
        winner_numbers: Optional[Sequence[int]] = None,
        *,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> WinnerSelectionResult:
        """Select the winners of ``drawing_id`` and replace any previous result.

        Parameters
        ----------
        drawing_id : str
            Drawing whose winners are selected.
        acting_user_id : Optional[str]
            Verified id of the caller; must own the drawing.
        winner_numbers : Optional[Sequence[int]], default: None
            Winning numbers for manual drawings. When omitted, the numbers
            stored on the drawing at creation time are used.
        now : Optional[datetime], default: None
            Reference time for the end-of-drawing check and ``selected_at``.
        rng : Optional[random.Random], default: None
            Randomness source for system draws. Defaults to OS entropy.

        Returns
        -------
        WinnerSelectionResult
            The winners in draw order together with the stored numbers.

        Notes
        -----
        The run starts by bumping ``Drawing.selection_round``. That update
        holds the drawing row lock until the caller's transaction ends, so
        two selections of the same drawing cannot interleave; the second one
        waits and then replaces the first result. Clearing and inserting the
        winner rows happen in the same SAVEPOINT, so readers never observe an
        empty result between runs and a failed run keeps the previous one.

        Raises
        ------
        DrawingNotFound, Forbidden, DrawingNotEnded
            If the drawing is missing, not owned by the caller, or still open.
        InvalidWinnerNumber
            If manual numbers are missing, repeated, not taken, not held by an
            approved participant, or held by someone who already won.
        InsufficientEligibleParticipants
            If a system draw has fewer distinct approved participants than
            winners.
        """

        ref = as_utc(now) or utcnow()
        with self._session.begin_nested():
            drawing, selection_round = self._lock_drawing(drawing_id)
            if not drawing.is_owned_by(acting_user_id):
                raise Forbidden("Only the drawing owner can select winners")
            if not drawing.has_ended(reference_time=ref):
                raise DrawingNotEnded(drawing_id, dt_iso(drawing.end_at))

            manual = (
                drawing.play_with_numbers
                and drawing.winner_selection is WinnerSelection.MANUAL
            )
            if winner_numbers and not manual:
                raise ValidationError(
                    "Winner numbers can only be supplied for manual selection"
                )

            if manual:
                winners = self._manual_number_winners(drawing, winner_numbers)
            elif drawing.play_with_numbers:
                winners = self._system_number_winners(drawing, rng)
            else:
                winners = self._system_participant_winners(drawing, rng)

            self._replace_winners(drawing, winners, ref)

        method = WinnerSelection.MANUAL if manual else WinnerSelection.SYSTEM
        logger.info(
            "Selected %d winner(s) for drawing %s (%s, round %d)",
            len(winners),
            drawing_id,
            method.value,
            selection_round,
        )
        return WinnerSelectionResult(
            drawing_id=drawing_id,
            winners=winners,
            winner_numbers=(
                list(drawing.winner_numbers) if drawing.winner_numbers else None
            ),
            selection_method=method,
            selected_at=ref,
        )

    def get_winners(self, drawing_id: str) -> WinnersView:
        """Return the persisted winners; an empty list before any selection."""

        drawing = Drawing.get_by_id(self._session, drawing_id)
        if drawing is None:
            raise DrawingNotFound(drawing_id)

        rows = self._session.execute(
            select(
                DrawingWinner.participant_id,
                Participant.name,
                Participant.email,
                Participant.phone,
                DrawingWinner.winning_number,
                DrawingWinner.selected_at,
            )
            .join(Participant, DrawingWinner.participant_id == Participant.id)
            .where(DrawingWinner.drawing_id == drawing_id)
            .order_by(DrawingWinner.id)
        ).all()

        return WinnersView(
            winners=[
                WinnerInfo(
                    participant_id=participant_id,
                    participant_name=name,
                    participant_email=email,
                    participant_phone=phone,
                    winning_number=winning_number,
                    selected_at=as_utc(selected_at),
                )
                for participant_id, name, email, phone, winning_number, selected_at in rows
            ],
            winner_numbers=list(drawing.winner_numbers) if drawing.winner_numbers else None,
            selection_method=(
                drawing.winner_selection
                if drawing.play_with_numbers
                else WinnerSelection.SYSTEM
            ),
        )

    def _lock_drawing(self, drawing_id: str) -> tuple[Drawing, int]:
        """Bump ``selection_round`` and return the drawing with the new round."""

        result = self._session.execute(
            update(Drawing)
            .where(Drawing.id == drawing_id)
            .values(selection_round=Drawing.selection_round + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise DrawingNotFound(drawing_id)
        selection_round = self._session.scalar(
            select(Drawing.selection_round).where(Drawing.id == drawing_id)
        )
        drawing = Drawing.get_by_id(self._session, drawing_id)
        if drawing is None or selection_round is None:
            raise DrawingNotFound(drawing_id)
        return drawing, selection_round

    def _manual_number_winners(
        self, drawing: Drawing, supplied: Optional[Sequence[int]]
    ) -> list[SelectedWinner]:
        numbers = list(supplied) if supplied else list(drawing.winner_numbers or [])
        if not numbers:
            raise InvalidWinnerNumber("Winner numbers are required for manual selection")
        if len(numbers) != drawing.winners_amount:
            raise InvalidWinnerNumber(
                f"Expected {drawing.winners_amount} winner numbers, got {len(numbers)}"
            )

        seen: set[int] = set()
        for number in numbers:
            if isinstance(number, bool) or not isinstance(number, int):
                raise InvalidWinnerNumber(f"Invalid winner number: {number!r}")
            if number in seen:
                raise InvalidWinnerNumber(
                    f"Number {number} is listed more than once", number
                )
            seen.add(number)

        rows = self._session.execute(
            select(
                NumberSlot.number,
                NumberSlot.status,
                Participant.id,
                Participant.name,
                Participant.eligibility,
            )
            .outerjoin(Participant, NumberSlot.participant_id == Participant.id)
            .where(
                NumberSlot.drawing_id == drawing.id,
                NumberSlot.number.in_(numbers),
            )
        ).all()
        by_number = {row[0]: row for row in rows}

        winners: list[SelectedWinner] = []
        used: set[int] = set()
        for number in numbers:
            row = by_number.get(number)
            if row is None:
                raise InvalidWinnerNumber(
                    f"Number {number} does not exist in this drawing", number
                )
            _, status, participant_id, name, eligibility = row
            if status is SlotStatus.RESERVED:
                raise InvalidWinnerNumber(
                    f"Number {number} is only reserved, not confirmed", number
                )
            if status is not SlotStatus.TAKEN or participant_id is None:
                raise InvalidWinnerNumber(
                    f"Number {number} has not been taken by any participant", number
                )
            if eligibility is Eligibility.PENDING:
                raise InvalidWinnerNumber(
                    f"Number {number} belongs to a pending participant ({name}) - "
                    "approve or reject them first",
                    number,
                )
            if eligibility is not Eligibility.APPROVED:
                raise InvalidWinnerNumber(
                    f"Number {number} belongs to a rejected participant ({name})",
                    number,
                )
            if participant_id in used:
                raise InvalidWinnerNumber(
                    f"Number {number} belongs to {name} who is already a winner "
                    "with another number",
                    number,
                )
            used.add(participant_id)
            winners.append(
                SelectedWinner(
                    participant_id=participant_id,
                    participant_name=name,
                    winning_number=number,
                )
            )
        return winners

    def _system_number_winners(
        self, drawing: Drawing, rng: Optional[random.Random]
    ) -> list[SelectedWinner]:
        rows = self._session.execute(
            select(NumberSlot.number, Participant.id, Participant.name)
            .join(Participant, NumberSlot.participant_id == Participant.id)
            .where(
                NumberSlot.drawing_id == drawing.id,
                NumberSlot.status == SlotStatus.TAKEN,
                Participant.eligibility == Eligibility.APPROVED,
            )
        ).all()
        entries = {number: (participant_id, name) for number, participant_id, name in rows}
        self._require_pool(drawing, len({pid for pid, _ in entries.values()}))

        # Shuffle every ticket and keep each holder's first number only.
        shuffled = draw_without_replacement(list(entries), len(entries), rng)
        winners: list[SelectedWinner] = []
        used: set[int] = set()
        for number in shuffled:
            participant_id, name = entries[number]
            if participant_id in used:
                continue
            used.add(participant_id)
            winners.append(
                SelectedWinner(
                    participant_id=participant_id,
                    participant_name=name,
                    winning_number=number,
                )
            )
            if len(winners) == drawing.winners_amount:
                break
        return winners

    def _system_participant_winners(
        self, drawing: Drawing, rng: Optional[random.Random]
    ) -> list[SelectedWinner]:
        names = {
            participant.id: participant.name
            for participant in Participant.approved_for_drawing(self._session, drawing.id)
        }
        self._require_pool(drawing, len(names))

        drawn = draw_without_replacement(list(names), drawing.winners_amount, rng)
        return [
            SelectedWinner(participant_id=participant_id, participant_name=names[participant_id])
            for participant_id in drawn
        ]

    @staticmethod
    def _require_pool(drawing: Drawing, available: int) -> None:
        if available < drawing.winners_amount:
            raise InsufficientEligibleParticipants(drawing.winners_amount, available)

    def _replace_winners(
        self, drawing: Drawing, winners: list[SelectedWinner], selected_at: datetime
    ) -> None:
        self._session.execute(
            delete(DrawingWinner).where(DrawingWinner.drawing_id == drawing.id)
        )
        self._session.add_all(
            [
                DrawingWinner(
                    drawing_id=drawing.id,
                    participant_id=winner.participant_id,
                    winning_number=winner.winning_number,
                    selected_at=selected_at,
                )
                for winner in winners
            ]
        )
        if drawing.play_with_numbers:
            drawing.winner_numbers = [winner.winning_number for winner in winners]
        drawing.winners_selected_at = selected_at
        self._session.flush()


__all__ = [
    "SelectedWinner",
    "WinnerInfo",
    "WinnerSelectionResult",
    "WinnerSelector",
    "WinnersView",
]
