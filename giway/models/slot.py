"""Database model for the numbered slots of a drawing."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    and_,
    case,
    or_,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql.elements import ColumnElement

from ..db.utils import as_utc, dt_iso
from .base import Base
from .id_type import ID_TYPE
from .utils import enum_values

if TYPE_CHECKING:
    from .drawing import Drawing
    from .participant import Participant


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    TAKEN = "taken"


class NumberSlot(Base):
    """One number of a drawing's fixed pool.

    The stored ``status`` is only half of the story: a ``reserved`` row whose
    ``expires_at`` has passed is logically available. Use
    :meth:`effective_status` on loaded rows and :meth:`effective_status_expr`
    in queries instead of reading ``status`` directly.
    """

    __tablename__ = "number_slots"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    drawing_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("drawings.id", ondelete="CASCADE"), nullable=False
    )

    number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[SlotStatus] = mapped_column(
        Enum(
            SlotStatus,
            name="slot_status",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=SlotStatus.AVAILABLE,
    )

    participant_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    reserved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    """Opaque token of the request (browser session, cart...) holding the reservation."""

    reserved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    drawing: Mapped["Drawing"] = relationship(back_populates="slots")
    participant: Mapped[Optional["Participant"]] = relationship(
        back_populates="slots"
    )

    __table_args__ = (
        UniqueConstraint("drawing_id", "number", name="uq_number_slots_drawing_number"),
        Index("ix_number_slots_drawing_status", "drawing_id", "status"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<NumberSlot("
            f"drawing_id={self.drawing_id!r}, number={self.number}, "
            f"status={self.status.value if self.status else None}, "
            f"participant_id={self.participant_id}, expires_at={dt_iso(self.expires_at)}"
            ")>"
        )

    def is_reservation_expired(
        self, *, reference_time: Optional[datetime] = None
    ) -> bool:
        if self.status != SlotStatus.RESERVED:
            return False
        if self.expires_at is None:
            return True
        ref = as_utc(reference_time) or datetime.now(timezone.utc)
        return as_utc(self.expires_at) <= ref

    def effective_status(
        self, *, reference_time: Optional[datetime] = None
    ) -> SlotStatus:
        if self.is_reservation_expired(reference_time=reference_time):
            return SlotStatus.AVAILABLE
        return self.status

    @classmethod
    def claimable_clause(
        cls, now: datetime, holder: Optional[str] = None
    ) -> ColumnElement[bool]:
        """SQL condition for rows a new reservation may overwrite.

        Available rows, lapsed reservations, and (when ``holder`` is given)
        reservations already held by the same holder.
        """

        reserved_options = [cls.expires_at.is_(None), cls.expires_at <= now]
        if holder is not None:
            reserved_options.append(cls.reserved_by == holder)
        return or_(
            cls.status == SlotStatus.AVAILABLE,
            and_(cls.status == SlotStatus.RESERVED, or_(*reserved_options)),
        )

    @classmethod
    def live_reservation_clause(
        cls, now: datetime, holder: Optional[str] = None
    ) -> ColumnElement[bool]:
        """SQL condition for reservations that are still running."""

        clause = and_(
            cls.status == SlotStatus.RESERVED,
            cls.expires_at.is_not(None),
            cls.expires_at > now,
        )
        if holder is not None:
            clause = and_(clause, cls.reserved_by == holder)
        return clause

    @classmethod
    def effective_status_expr(cls, now: datetime) -> ColumnElement[str]:
        """SQL expression yielding the status value with lapsed reservations as available."""

        return case(
            (
                and_(
                    cls.status == SlotStatus.RESERVED,
                    or_(cls.expires_at.is_(None), cls.expires_at <= now),
                ),
                SlotStatus.AVAILABLE.value,
            ),
            else_=cls.status,
        )


__all__ = ["NumberSlot", "SlotStatus"]
