from datetime import datetime, timedelta, timezone

from giway.config import setup_logging
from giway.db.engine import get_sessionmaker, make_engine
from giway.models import Base, WinnerSelection
from giway.participation import ParticipantDraft
from giway.workflows import (
    confirm_participation,
    create_drawing,
    reserve_numbers,
    set_eligibility,
)


def main() -> None:
    """Seed the development database with a demo raffle and giveaway."""
    logger = setup_logging()
    engine = make_engine()

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        # Raffle with 100 numbers; ended, so winners can be selected right away.
        raffle = create_drawing(
            session,
            owner_id="host_01",
            title="Demo raffle",
            end_at=now - timedelta(minutes=5),
            winner_selection=WinnerSelection.SYSTEM,
            play_with_numbers=True,
            quantity_of_numbers=100,
            winners_amount=2,
            is_paid=True,
            price=500,
        )

        entries = [
            ("Alice", "+10000000001", [7, 12]),
            ("Bob", "+10000000002", [21]),
            ("Carol", "+10000000003", [45, 46, 47]),
        ]
        for name, phone, numbers in entries:
            holder = f"seed-{name.lower()}"
            reserve_numbers(session, raffle.id, numbers, holder=holder, now=now)
            participant = confirm_participation(
                session,
                raffle.id,
                numbers,
                ParticipantDraft(name=name, phone=phone),
                holder=holder,
                now=now,
            )
            set_eligibility(session, participant.id, "approved", acting_user_id="host_01")

        # Numberless giveaway still open for a week.
        giveaway = create_drawing(
            session,
            owner_id="host_01",
            title="Demo giveaway",
            end_at=now + timedelta(days=7),
        )
        for name, phone in [("Dave", "+10000000004"), ("Erin", "+10000000005")]:
            confirm_participation(
                session, giveaway.id, None, ParticipantDraft(name=name, phone=phone)
            )

    logger.info("Seeded raffle %s and giveaway %s", raffle.id, giveaway.id)


if __name__ == "__main__":
    main()
