"""Database model for drawings (raffles and giveaways)."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Integer,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import as_utc, dt_iso
from .base import Base
from .utils import enum_values, generate_drawing_id

if TYPE_CHECKING:
    from .participant import Participant
    from .slot import NumberSlot
    from .winner import DrawingWinner


class WinnerSelection(str, enum.Enum):
    """How winning numbers are decided for a drawing."""

    MANUAL = "manual"
    SYSTEM = "system"


class SelectionState(str, enum.Enum):
    NOT_SELECTABLE = "not_selectable"
    SELECTABLE = "selectable"
    SELECTED = "selected"


class Drawing(Base):
    """A raffle (played with numbered slots) or a numberless giveaway."""

    __tablename__ = "drawings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    """Short base62 identifier shared in public drawing URLs."""

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    """Identity-provider id of the host who created the drawing."""

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Paid drawings register participants as pending until the host approves them."""

    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Ticket price in cents. Informational only."""

    winner_selection: Mapped[WinnerSelection] = mapped_column(
        Enum(
            WinnerSelection,
            name="winner_selection",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
    )

    play_with_numbers: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    quantity_of_numbers: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    winners_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    winner_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    """Winning numbers in draw order. Written by winner selection only."""

    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    entry_counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Last entry number handed out in a numberless drawing."""

    selection_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Bumped under the row lock each time winners are (re)selected."""

    winners_selected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    slots: Mapped[list["NumberSlot"]] = relationship(
        back_populates="drawing",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    participants: Mapped[list["Participant"]] = relationship(
        back_populates="drawing",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    winners: Mapped[list["DrawingWinner"]] = relationship(
        back_populates="drawing",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("winners_amount >= 1", name="winners_amount_positive"),
        CheckConstraint("quantity_of_numbers >= 0", name="quantity_non_negative"),
    )

    def __init__(
        self,
        *,
        owner_id: str,
        title: str,
        end_at: datetime,
        winner_selection: WinnerSelection = WinnerSelection.SYSTEM,
        play_with_numbers: bool = False,
        quantity_of_numbers: int = 0,
        winners_amount: int = 1,
        is_paid: bool = False,
        price: int = 0,
        winner_numbers: Optional[list[int]] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.id = id or generate_drawing_id()
        self.owner_id = owner_id
        self.title = title
        self.end_at = end_at
        self.winner_selection = WinnerSelection(winner_selection)
        self.play_with_numbers = play_with_numbers
        self.quantity_of_numbers = quantity_of_numbers
        self.winners_amount = winners_amount
        self.is_paid = is_paid
        self.price = price
        self.winner_numbers = list(winner_numbers) if winner_numbers else None
        self.entry_counter = 0
        self.selection_round = 0
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<Drawing("
            f"id={self.id!r}, owner_id={self.owner_id!r}, "
            f"play_with_numbers={self.play_with_numbers}, "
            f"quantity_of_numbers={self.quantity_of_numbers}, "
            f"end_at={dt_iso(self.end_at)}"
            ")>"
        )

    @classmethod
    def get_by_id(cls, session: Session, drawing_id: str) -> Optional["Drawing"]:
        """Return the drawing with ``drawing_id``, reloading any cached state."""

        return session.scalar(
            select(cls)
            .where(cls.id == drawing_id)
            .execution_options(populate_existing=True)
        )

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def has_ended(self, *, reference_time: Optional[datetime] = None) -> bool:
        """Check whether ``end_at`` lies strictly before ``reference_time``."""

        ref = as_utc(reference_time) or datetime.now(timezone.utc)
        return as_utc(self.end_at) < ref

    def selection_state(
        self, *, reference_time: Optional[datetime] = None
    ) -> SelectionState:
        if self.winners_selected_at is not None:
            return SelectionState.SELECTED
        if self.has_ended(reference_time=reference_time):
            return SelectionState.SELECTABLE
        return SelectionState.NOT_SELECTABLE


__all__ = ["Drawing", "SelectionState", "WinnerSelection"]
