"""Atomic claim and release of number slots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..config import MAX_RESERVATION_MINUTES, MIN_RESERVATION_MINUTES, load_settings
from ..db.utils import as_utc, utcnow
from ..exceptions import DrawingNotFound, SlotUnavailable, ValidationError
from ..models import Drawing, NumberSlot, SlotStatus
from .store import SlotStore

logger = logging.getLogger(__name__)


@dataclass
class Reservation:
    """A provisional hold on one slot."""

    drawing_id: str
    number: int
    reserved_at: datetime
    expires_at: datetime
    holder: Optional[str] = None


@dataclass
class BulkReservation:
    successful: list[Reservation] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class ReservationManager:
    """Claims and releases slots with guarded, single-statement updates.

    No row is read before it is written: each transition is one ``UPDATE``
    whose ``WHERE`` clause spells out the state it expects to replace, and the
    affected row count decides the outcome. Concurrent claims on the same
    number therefore resolve inside the database to exactly one winner.

    Expiry is never written by a timer. A reservation whose ``expires_at``
    has passed simply matches the claimable condition of the next
    :meth:`reserve` call.
    """

    def __init__(
        self, session: Session, *, default_ttl_minutes: Optional[int] = None
    ) -> None:
        self._session = session
        self._default_ttl = default_ttl_minutes

    def _resolve_ttl(self, ttl_minutes: Optional[int]) -> int:
        if ttl_minutes is None:
            ttl_minutes = self._default_ttl
        if ttl_minutes is None:
            ttl_minutes = load_settings().reservation_time_minutes
        if isinstance(ttl_minutes, bool) or not isinstance(ttl_minutes, int):
            raise ValidationError("Expiration must be a whole number of minutes")
        if not MIN_RESERVATION_MINUTES <= ttl_minutes <= MAX_RESERVATION_MINUTES:
            raise ValidationError(
                f"Expiration must be between {MIN_RESERVATION_MINUTES} and "
                f"{MAX_RESERVATION_MINUTES} minutes"
            )
        return ttl_minutes

    def reserve(
        self,
        drawing_id: str,
        number: int,
        *,
        ttl_minutes: Optional[int] = None,
        holder: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Reservation:
        """Hold ``number`` of ``drawing_id`` for ``ttl_minutes``.

        The slot is claimed when it is available, when its reservation has
        lapsed, or when ``holder`` already holds it (the hold is extended).

        Raises
        ------
        SlotUnavailable
            If the slot is taken or held by someone else.
        DrawingNotFound
            If the drawing does not exist.
        ValidationError
            If the TTL is out of range, the drawing is numberless, or the
            number is outside the drawing's pool.
        """

        ttl = self._resolve_ttl(ttl_minutes)
        reserved_at = as_utc(now) or utcnow()
        expires_at = reserved_at + timedelta(minutes=ttl)

        result = self._session.execute(
            update(NumberSlot)
            .where(
                NumberSlot.drawing_id == drawing_id,
                NumberSlot.number == number,
                NumberSlot.claimable_clause(reserved_at, holder),
            )
            .values(
                status=SlotStatus.RESERVED,
                reserved_by=holder,
                reserved_at=reserved_at,
                expires_at=expires_at,
                participant_id=None,
                updated_at=reserved_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._raise_unclaimable(drawing_id, number)

        logger.info(
            "Reserved number %s of drawing %s until %s",
            number,
            drawing_id,
            expires_at.isoformat(),
        )
        return Reservation(
            drawing_id=drawing_id,
            number=number,
            reserved_at=reserved_at,
            expires_at=expires_at,
            holder=holder,
        )

    def _raise_unclaimable(self, drawing_id: str, number: int) -> None:
        """Explain why a guarded claim matched no row."""

        slot = SlotStore(self._session).get_slot(drawing_id, number)
        if slot is not None:
            logger.debug("Number %s of drawing %s is not available", number, drawing_id)
            raise SlotUnavailable(drawing_id, number)

        drawing = self._session.get(Drawing, drawing_id)
        if drawing is None:
            raise DrawingNotFound(drawing_id)
        if not drawing.play_with_numbers:
            raise ValidationError("Drawing does not play with numbers")
        raise ValidationError(f"Number {number} does not exist in this drawing")

    def reserve_many(
        self,
        drawing_id: str,
        numbers: Iterable[int],
        *,
        ttl_minutes: Optional[int] = None,
        holder: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BulkReservation:
        """Reserve each of ``numbers`` independently and report the outcome.

        Numbers that cannot be claimed are listed in ``failed``; the others
        stay reserved. Validation errors (bad TTL, unknown drawing) still
        propagate.
        """

        ref = as_utc(now) or utcnow()
        outcome = BulkReservation()
        for number in numbers:
            try:
                outcome.successful.append(
                    self.reserve(
                        drawing_id,
                        number,
                        ttl_minutes=ttl_minutes,
                        holder=holder,
                        now=ref,
                    )
                )
            except SlotUnavailable:
                outcome.failed.append(number)
        return outcome

    def release(
        self,
        drawing_id: str,
        numbers: Iterable[int],
        *,
        holder: Optional[str] = None,
    ) -> int:
        """Return reserved slots among ``numbers`` to the pool.

        Idempotent: available and taken rows are never touched. With
        ``holder`` only that holder's reservations are released.

        Returns
        -------
        int
            Number of slots released.
        """

        wanted = sorted(set(numbers))
        if not wanted:
            return 0

        stmt = update(NumberSlot).where(
            NumberSlot.drawing_id == drawing_id,
            NumberSlot.number.in_(wanted),
            NumberSlot.status == SlotStatus.RESERVED,
        )
        if holder is not None:
            stmt = stmt.where(NumberSlot.reserved_by == holder)
        result = self._session.execute(
            stmt.values(
                status=SlotStatus.AVAILABLE,
                reserved_by=None,
                reserved_at=None,
                expires_at=None,
                participant_id=None,
                updated_at=utcnow(),
            ).execution_options(synchronize_session=False)
        )
        released = result.rowcount or 0
        if released:
            logger.info(
                "Released %d reservation(s) of drawing %s", released, drawing_id
            )
        return released

    def sweep_expired(
        self,
        *,
        drawing_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Rewrite lapsed reservations as available rows.

        Only keeps stored statuses close to effective ones so that read
        queries stay simple; claims never wait for it.
        """

        ref = as_utc(now) or utcnow()
        stmt = update(NumberSlot).where(
            NumberSlot.status == SlotStatus.RESERVED,
            ~NumberSlot.live_reservation_clause(ref),
        )
        if drawing_id is not None:
            stmt = stmt.where(NumberSlot.drawing_id == drawing_id)
        result = self._session.execute(
            stmt.values(
                status=SlotStatus.AVAILABLE,
                reserved_by=None,
                reserved_at=None,
                expires_at=None,
                updated_at=ref,
            ).execution_options(synchronize_session=False)
        )
        swept = result.rowcount or 0
        if swept:
            logger.info("Swept %d expired reservation(s)", swept)
        return swept


__all__ = ["BulkReservation", "Reservation", "ReservationManager"]
