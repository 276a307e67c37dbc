"""Entry points used by the web layer.

Each function takes the caller's :class:`~sqlalchemy.orm.Session` first and
leaves transaction boundaries to the caller: nothing here commits. Expected
outcomes are raised as the exceptions of :mod:`giway.exceptions`; unexpected
database failures are logged and re-raised as
:class:`~giway.exceptions.PersistenceError`.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import load_settings
from .db.utils import as_utc
from .exceptions import DrawingNotFound, PersistenceError, ValidationError
from .models import Drawing, Eligibility, Participant, SlotStatus, WinnerSelection
from .models.utils import generate_drawing_id
from .participation import EligibilityManager, ParticipantDraft, ParticipationConfirmer
from .slots import (
    BulkReservation,
    DrawingStats,
    Reservation,
    ReservationManager,
    SlotPage,
    SlotStore,
)
from .slots.store import MAX_NUMBERS_PER_DRAWING
from .winners import WinnerSelectionResult, WinnerSelector, WinnersView

logger = logging.getLogger(__name__)


@contextmanager
def _persistence_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Database failure while trying to %s", action)
        raise PersistenceError(f"Could not {action}") from exc


def _require_drawing(session: Session, drawing_id: str) -> Drawing:
    drawing = session.get(Drawing, drawing_id)
    if drawing is None:
        raise DrawingNotFound(drawing_id)
    return drawing


def reservation_time_minutes() -> int:
    """Return the configured default reservation lifetime in minutes."""

    return load_settings().reservation_time_minutes


def create_drawing(
    session: Session,
    *,
    owner_id: str,
    title: str,
    end_at: datetime,
    winner_selection: Union[WinnerSelection, str] = WinnerSelection.SYSTEM,
    play_with_numbers: bool = False,
    quantity_of_numbers: int = 0,
    winners_amount: int = 1,
    is_paid: bool = False,
    price: int = 0,
    winner_numbers: Optional[Sequence[int]] = None,
) -> Drawing:
    """Create a drawing and, for numbered drawings, its slot pool.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session used for persistence.
    owner_id : str
        Id of the host creating the drawing.
    title : str
        Display title.
    end_at : datetime
        Instant after which winners may be selected. Naive values are read
        as UTC.
    winner_selection : WinnerSelection | str, default: WinnerSelection.SYSTEM
        How winners are chosen. Numberless drawings always use system
        selection.
    play_with_numbers : bool, default: False
        Whether participants pick numbers from a fixed pool.
    quantity_of_numbers : int, default: 0
        Pool size for numbered drawings (``1..10000``); ignored otherwise.
    winners_amount : int, default: 1
        How many winners are selected.
    is_paid : bool, default: False
        Paid drawings register participants as pending until the host
        approves them.
    price : int, default: 0
        Ticket price in the smallest currency unit.
    winner_numbers : Optional[Sequence[int]], default: None
        Winning numbers decided up front for manual drawings.

    Returns
    -------
    Drawing
        The flushed drawing. Its slots exist in the same transaction.

    Raises
    ------
    ValidationError
        If any of the parameters is out of range.
    """

    owner_id = (owner_id or "").strip()
    title = (title or "").strip()
    if not owner_id:
        raise ValidationError("Owner is required")
    if not title:
        raise ValidationError("Title is required")
    if end_at is None:
        raise ValidationError("End date is required")
    try:
        selection = WinnerSelection(winner_selection)
    except ValueError:
        raise ValidationError(
            "Invalid winner selection. Must be one of: manual, system"
        ) from None
    if isinstance(winners_amount, bool) or not isinstance(winners_amount, int):
        raise ValidationError("Winners amount must be a whole number")
    if winners_amount < 1:
        raise ValidationError("Winners amount must be at least 1")
    if price < 0:
        raise ValidationError("Price must not be negative")

    if play_with_numbers:
        if not 1 <= quantity_of_numbers <= MAX_NUMBERS_PER_DRAWING:
            raise ValidationError(
                f"Quantity of numbers must be between 1 and {MAX_NUMBERS_PER_DRAWING}"
            )
        if winners_amount > quantity_of_numbers:
            raise ValidationError(
                "Winners amount cannot exceed the quantity of numbers"
            )
    else:
        quantity_of_numbers = 0
        selection = WinnerSelection.SYSTEM

    stored_numbers = list(winner_numbers or [])
    if stored_numbers:
        if selection is not WinnerSelection.MANUAL:
            raise ValidationError(
                "Winner numbers can only be set for manual selection"
            )
        if len(stored_numbers) != winners_amount:
            raise ValidationError(
                f"Expected {winners_amount} winner numbers, got {len(stored_numbers)}"
            )
        if len(set(stored_numbers)) != len(stored_numbers):
            raise ValidationError("Winner numbers must not repeat")
        for number in stored_numbers:
            if isinstance(number, bool) or not isinstance(number, int):
                raise ValidationError(f"Invalid winner number: {number!r}")
            if not 1 <= number <= quantity_of_numbers:
                raise ValidationError(
                    f"Number {number} does not exist in this drawing"
                )

    with _persistence_errors("create drawing"):
        with session.begin_nested():
            drawing = Drawing(
                id=generate_drawing_id(session),
                owner_id=owner_id,
                title=title,
                end_at=as_utc(end_at),
                winner_selection=selection,
                play_with_numbers=play_with_numbers,
                quantity_of_numbers=quantity_of_numbers,
                winners_amount=winners_amount,
                is_paid=is_paid,
                price=price,
                winner_numbers=stored_numbers or None,
            )
            session.add(drawing)
            session.flush()
            if play_with_numbers:
                SlotStore(session).initialize(drawing.id, quantity_of_numbers)

    logger.info(
        "Drawing %s created by %s (%s numbers, %d winner(s))",
        drawing.id,
        owner_id,
        quantity_of_numbers if play_with_numbers else "no",
        winners_amount,
    )
    return drawing


def reserve_number(
    session: Session,
    drawing_id: str,
    number: int,
    *,
    ttl_minutes: Optional[int] = None,
    holder: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Reservation:
    """Hold one number; see :meth:`ReservationManager.reserve`."""

    with _persistence_errors("reserve number"):
        return ReservationManager(session).reserve(
            drawing_id, number, ttl_minutes=ttl_minutes, holder=holder, now=now
        )


def reserve_numbers(
    session: Session,
    drawing_id: str,
    numbers: Iterable[int],
    *,
    ttl_minutes: Optional[int] = None,
    holder: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BulkReservation:
    with _persistence_errors("reserve numbers"):
        outcome = ReservationManager(session).reserve_many(
            drawing_id, numbers, ttl_minutes=ttl_minutes, holder=holder, now=now
        )
    if outcome.failed:
        logger.info(
            "Numbers %s of drawing %s could not be reserved",
            outcome.failed,
            drawing_id,
        )
    return outcome


def release_numbers(
    session: Session,
    drawing_id: str,
    numbers: Iterable[int],
    *,
    holder: Optional[str] = None,
) -> int:
    """Release reservations; safe to call repeatedly."""

    with _persistence_errors("release numbers"):
        return ReservationManager(session).release(drawing_id, numbers, holder=holder)


def confirm_participation(
    session: Session,
    drawing_id: str,
    numbers: Optional[Sequence[int]],
    draft: ParticipantDraft,
    *,
    holder: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Participant:
    """Register a participant and take their reserved numbers atomically.

    See :meth:`ParticipationConfirmer.confirm` for the rules applied.
    """

    with _persistence_errors("confirm participation"):
        return ParticipationConfirmer(session).confirm(
            drawing_id, numbers, draft, holder=holder, now=now
        )


def set_eligibility(
    session: Session,
    participant_id: int,
    status: Union[Eligibility, str],
    *,
    acting_user_id: Optional[str] = None,
) -> Participant:
    with _persistence_errors("update participant eligibility"):
        return EligibilityManager(session).set_eligibility(
            participant_id, status, acting_user_id=acting_user_id
        )


def select_winners(
    session: Session,
    drawing_id: str,
    acting_user_id: Optional[str],
    winner_numbers: Optional[Sequence[int]] = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> WinnerSelectionResult:
    """Select and persist the winners of an ended drawing.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session used for persistence.
    drawing_id : str
        Drawing whose winners are selected.
    acting_user_id : Optional[str]
        Verified id of the caller; only the owner may select winners.
    winner_numbers : Optional[Sequence[int]], default: None
        Winning numbers for manual drawings.
    now : Optional[datetime], default: None
        Reference time, defaults to the current UTC time.
    rng : Optional[random.Random], default: None
        Randomness source for system draws.

    Returns
    -------
    WinnerSelectionResult
        The persisted winners in draw order.
    """

    with _persistence_errors("select winners"):
        return WinnerSelector(session).select(
            drawing_id, acting_user_id, winner_numbers, now=now, rng=rng
        )


def get_winners(session: Session, drawing_id: str) -> WinnersView:
    with _persistence_errors("load winners"):
        return WinnerSelector(session).get_winners(drawing_id)


def list_slots(
    session: Session,
    drawing_id: str,
    *,
    page: int = 1,
    page_size: int = 100,
    status: Optional[Union[SlotStatus, str]] = None,
    numbers: Optional[Sequence[int]] = None,
    now: Optional[datetime] = None,
) -> SlotPage:
    """Return one page of a drawing's slots with effective statuses."""

    if status is not None:
        try:
            status = SlotStatus(status)
        except ValueError:
            raise ValidationError(
                "Invalid status. Must be one of: available, reserved, taken"
            ) from None

    with _persistence_errors("list slots"):
        _require_drawing(session, drawing_id)
        return SlotStore(session).list_slots(
            drawing_id,
            page=page,
            page_size=page_size,
            status=status,
            numbers=numbers,
            now=now,
        )


def drawing_stats(
    session: Session, drawing_id: str, *, now: Optional[datetime] = None
) -> DrawingStats:
    with _persistence_errors("compute drawing stats"):
        _require_drawing(session, drawing_id)
        return SlotStore(session).stats(drawing_id, now=now)


def sweep_expired_reservations(
    session: Session,
    *,
    drawing_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Rewrite lapsed reservations as available rows.

    Housekeeping only: reservations and listings already treat lapsed
    reservations as available.
    """

    with _persistence_errors("sweep expired reservations"):
        return ReservationManager(session).sweep_expired(
            drawing_id=drawing_id, now=now
        )


__all__ = [
    "confirm_participation",
    "create_drawing",
    "drawing_stats",
    "get_winners",
    "list_slots",
    "release_numbers",
    "reservation_time_minutes",
    "reserve_number",
    "reserve_numbers",
    "select_winners",
    "set_eligibility",
    "sweep_expired_reservations",
]
