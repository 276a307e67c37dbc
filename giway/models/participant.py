"""Database model for drawing participants."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE
from .utils import enum_values

if TYPE_CHECKING:
    from .drawing import Drawing
    from .slot import NumberSlot
    from .winner import DrawingWinner


class Eligibility(str, enum.Enum):
    """Host review state of a participant.

    Only ``APPROVED`` participants take part in winner selection. The legacy
    nullable-boolean form (``None``/``True``/``False``) is available through
    :attr:`is_eligible` and :meth:`from_is_eligible`.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_eligible(self) -> Optional[bool]:
        if self is Eligibility.PENDING:
            return None
        return self is Eligibility.APPROVED

    @classmethod
    def from_is_eligible(cls, value: Optional[bool]) -> "Eligibility":
        if value is None:
            return cls.PENDING
        return cls.APPROVED if value else cls.REJECTED


class Participant(Base):
    """A registration for a drawing, bound to zero or more taken slots."""

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    drawing_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("drawings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    selected_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    log_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    eligibility: Mapped[Eligibility] = mapped_column(
        Enum(
            Eligibility,
            name="eligibility",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=Eligibility.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    drawing: Mapped["Drawing"] = relationship(back_populates="participants")
    slots: Mapped[list["NumberSlot"]] = relationship(back_populates="participant")
    wins: Mapped[list["DrawingWinner"]] = relationship(
        back_populates="participant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_participants_drawing_eligibility", "drawing_id", "eligibility"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<Participant("
            f"id={self.id}, drawing_id={self.drawing_id!r}, "
            f"selected_number={self.selected_number}, "
            f"eligibility={self.eligibility.value if self.eligibility else None}"
            ")>"
        )

    @property
    def is_eligible(self) -> Optional[bool]:
        return self.eligibility.is_eligible

    @classmethod
    def get_by_id(cls, session: Session, participant_id: int) -> Optional["Participant"]:
        return session.scalar(
            select(cls)
            .where(cls.id == participant_id)
            .execution_options(populate_existing=True)
        )

    @classmethod
    def approved_for_drawing(
        cls, session: Session, drawing_id: str
    ) -> list["Participant"]:
        """Return approved participants of ``drawing_id`` ordered by id."""

        stmt = (
            select(cls)
            .where(
                cls.drawing_id == drawing_id,
                cls.eligibility == Eligibility.APPROVED,
            )
            .order_by(cls.id)
        )
        return list(session.scalars(stmt))


__all__ = ["Eligibility", "Participant"]
