"""Creation and read paths for the number slots of a drawing."""

from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session

from ..db.utils import as_utc, utcnow
from ..exceptions import ValidationError
from ..models import NumberSlot, Participant, SlotStatus

logger = logging.getLogger(__name__)

MAX_NUMBERS_PER_DRAWING = 10_000
INSERT_BATCH_SIZE = 1_000
MAX_PAGE_SIZE = 1_000


@dataclass
class SlotInfo:
    """A slot as presented to clients, with lapsed reservations shown as available."""

    number: int
    status: SlotStatus
    participant_id: Optional[int] = None
    participant_name: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class SlotPage:
    slots: list[SlotInfo]
    total_count: int
    available_count: int
    reserved_count: int
    taken_count: int
    has_more: bool
    next_page: Optional[int] = None


@dataclass
class DrawingStats:
    total: int
    available: int
    reserved: int
    taken: int
    percentage_taken: float


class SlotStore:
    """Owns the ``number_slots`` rows of drawings.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session used for lookups and persistence.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def initialize(self, drawing_id: str, quantity: int) -> int:
        """Create the slots ``1..quantity`` for a new drawing.

        Rows are inserted in batches of ``INSERT_BATCH_SIZE``. The call fails
        when the drawing already owns slots so that a number can never exist
        twice.

        Returns
        -------
        int
            Number of rows created.

        Raises
        ------
        ValidationError
            If ``quantity`` is outside ``1..MAX_NUMBERS_PER_DRAWING`` or the
            drawing already has slots.
        """

        if quantity <= 0 or quantity > MAX_NUMBERS_PER_DRAWING:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_NUMBERS_PER_DRAWING}"
            )

        existing = self._session.scalar(
            select(func.count())
            .select_from(NumberSlot)
            .where(NumberSlot.drawing_id == drawing_id)
        )
        if existing:
            raise ValidationError("Number slots already initialized for this drawing")

        for start in range(1, quantity + 1, INSERT_BATCH_SIZE):
            stop = min(start + INSERT_BATCH_SIZE, quantity + 1)
            self._session.execute(
                insert(NumberSlot),
                [
                    {
                        "drawing_id": drawing_id,
                        "number": number,
                        "status": SlotStatus.AVAILABLE,
                    }
                    for number in range(start, stop)
                ],
            )
        logger.info("Initialized %d number slots for drawing %s", quantity, drawing_id)
        return quantity

    def list_slots(
        self,
        drawing_id: str,
        *,
        page: int = 1,
        page_size: int = 100,
        status: Optional[SlotStatus] = None,
        numbers: Optional[Sequence[int]] = None,
        now: Optional[datetime] = None,
    ) -> SlotPage:
        """Return one page of slots ordered by number, with per-status counts.

        ``status`` filters on the effective status. When ``numbers`` is given
        only those numbers are considered.
        """

        if page < 1:
            raise ValidationError("Page must be at least 1")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")

        ref = as_utc(now) or utcnow()
        effective = NumberSlot.effective_status_expr(ref)

        stmt = (
            select(
                NumberSlot.number,
                effective.label("effective_status"),
                NumberSlot.participant_id,
                Participant.name,
                NumberSlot.expires_at,
            )
            .outerjoin(Participant, NumberSlot.participant_id == Participant.id)
            .where(NumberSlot.drawing_id == drawing_id)
        )
        if status is not None:
            stmt = stmt.where(effective == SlotStatus(status).value)
        if numbers:
            stmt = stmt.where(NumberSlot.number.in_(list(numbers)))

        # Fetch one extra row to learn whether another page exists.
        rows = self._session.execute(
            stmt.order_by(NumberSlot.number)
            .limit(page_size + 1)
            .offset((page - 1) * page_size)
        ).all()
        has_more = len(rows) > page_size
        rows = rows[:page_size]

        slots = []
        for number, raw_status, participant_id, participant_name, expires_at in rows:
            slot_status = SlotStatus(raw_status)
            slots.append(
                SlotInfo(
                    number=number,
                    status=slot_status,
                    participant_id=participant_id,
                    participant_name=participant_name,
                    expires_at=(
                        as_utc(expires_at) if slot_status is SlotStatus.RESERVED else None
                    ),
                )
            )

        stats = self.stats(drawing_id, now=ref)
        return SlotPage(
            slots=slots,
            total_count=stats.total,
            available_count=stats.available,
            reserved_count=stats.reserved,
            taken_count=stats.taken,
            has_more=has_more,
            next_page=page + 1 if has_more else None,
        )

    def stats(self, drawing_id: str, *, now: Optional[datetime] = None) -> DrawingStats:
        """Aggregate slot counts for ``drawing_id`` using effective statuses."""

        ref = as_utc(now) or utcnow()
        stored = {
            SlotStatus(row_status): count
            for row_status, count in self._session.execute(
                select(NumberSlot.status, func.count())
                .where(NumberSlot.drawing_id == drawing_id)
                .group_by(NumberSlot.status)
            )
        }
        lapsed = self._session.scalar(
            select(func.count())
            .select_from(NumberSlot)
            .where(
                NumberSlot.drawing_id == drawing_id,
                NumberSlot.status == SlotStatus.RESERVED,
                ~NumberSlot.live_reservation_clause(ref),
            )
        ) or 0

        available = stored.get(SlotStatus.AVAILABLE, 0) + lapsed
        reserved = stored.get(SlotStatus.RESERVED, 0) - lapsed
        taken = stored.get(SlotStatus.TAKEN, 0)
        total = available + reserved + taken
        percentage = round(taken / total * 100, 2) if total else 0.0
        return DrawingStats(
            total=total,
            available=available,
            reserved=reserved,
            taken=taken,
            percentage_taken=percentage,
        )

    def random_available_number(
        self,
        drawing_id: str,
        *,
        rng: Optional[random.Random] = None,
        now: Optional[datetime] = None,
    ) -> Optional[int]:
        """Pick a uniformly random claimable number, or ``None`` when sold out."""

        ref = as_utc(now) or utcnow()
        candidates = list(
            self._session.scalars(
                select(NumberSlot.number)
                .where(
                    NumberSlot.drawing_id == drawing_id,
                    NumberSlot.claimable_clause(ref),
                )
                .order_by(NumberSlot.number)
            )
        )
        if not candidates:
            return None
        return (rng or secrets.SystemRandom()).choice(candidates)

    def is_number_available(
        self, drawing_id: str, number: int, *, now: Optional[datetime] = None
    ) -> bool:
        ref = as_utc(now) or utcnow()
        found = self._session.scalar(
            select(NumberSlot.id).where(
                NumberSlot.drawing_id == drawing_id,
                NumberSlot.number == number,
                NumberSlot.claimable_clause(ref),
            )
        )
        return found is not None

    def participant_numbers(self, drawing_id: str, participant_id: int) -> list[int]:
        """Return the numbers currently taken by ``participant_id``, ascending."""

        return list(
            self._session.scalars(
                select(NumberSlot.number)
                .where(
                    NumberSlot.drawing_id == drawing_id,
                    NumberSlot.participant_id == participant_id,
                    NumberSlot.status == SlotStatus.TAKEN,
                )
                .order_by(NumberSlot.number)
            )
        )

    def get_slot(self, drawing_id: str, number: int) -> Optional[NumberSlot]:
        return self._session.scalar(
            select(NumberSlot)
            .where(NumberSlot.drawing_id == drawing_id, NumberSlot.number == number)
            .execution_options(populate_existing=True)
        )


__all__ = [
    "DrawingStats",
    "MAX_NUMBERS_PER_DRAWING",
    "SlotInfo",
    "SlotPage",
    "SlotStore",
]
