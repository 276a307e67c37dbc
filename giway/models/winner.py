from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .drawing import Drawing
    from .participant import Participant


class DrawingWinner(Base):
    """Result row of a winner selection run.

    The rows of a drawing are only ever replaced as a whole set by
    :class:`giway.winners.WinnerSelector`.
    """

    __tablename__ = "drawing_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    drawing_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("drawings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    winning_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Winning slot number; ``None`` in numberless drawings."""

    selected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    drawing: Mapped["Drawing"] = relationship(back_populates="winners")
    participant: Mapped["Participant"] = relationship(back_populates="wins")

    __table_args__ = (
        UniqueConstraint(
            "drawing_id", "winning_number", name="uq_drawing_winners_drawing_number"
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<DrawingWinner(drawing_id={self.drawing_id!r}, "
            f"participant_id={self.participant_id}, winning_number={self.winning_number})>"
        )
