import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from giway.db.engine import get_sessionmaker, make_engine
from giway.models import (
    Base,
    Drawing,
    Eligibility,
    NumberSlot,
    Participant,
    SelectionState,
    SlotStatus,
    WinnerSelection,
)
from giway.models.utils import BASE62_ALPHABET, generate_drawing_id
from giway.slots import SlotStore

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self):
        self.engine.dispose()

    def _drawing(self, session, **overrides) -> Drawing:
        values = dict(
            owner_id="host-1",
            title="Spring raffle",
            end_at=NOW + timedelta(days=1),
            play_with_numbers=True,
            quantity_of_numbers=20,
        )
        values.update(overrides)
        drawing = Drawing(**values)
        session.add(drawing)
        session.flush()
        return drawing

    def test_generate_drawing_id_uses_base62(self):
        drawing_id = generate_drawing_id(length=12)
        self.assertEqual(len(drawing_id), 12)
        self.assertTrue(set(drawing_id) <= set(BASE62_ALPHABET))

    def test_drawing_defaults(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session)
            self.assertEqual(len(drawing.id), 10)
            self.assertIs(drawing.winner_selection, WinnerSelection.SYSTEM)
            self.assertEqual(drawing.entry_counter, 0)
            self.assertEqual(drawing.selection_round, 0)
            self.assertIsNone(drawing.winner_numbers)

        with self.Session() as session:
            found = Drawing.get_by_id(session, drawing.id)
            assert found is not None
            self.assertEqual(found.title, "Spring raffle")
            self.assertIsNone(Drawing.get_by_id(session, "missing"))

    def test_selection_state_follows_end_and_selection(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session, end_at=NOW)
            self.assertIs(
                drawing.selection_state(reference_time=NOW - timedelta(seconds=1)),
                SelectionState.NOT_SELECTABLE,
            )
            # end_at must lie strictly in the past
            self.assertIs(
                drawing.selection_state(reference_time=NOW),
                SelectionState.NOT_SELECTABLE,
            )
            self.assertIs(
                drawing.selection_state(reference_time=NOW + timedelta(seconds=1)),
                SelectionState.SELECTABLE,
            )
            drawing.winners_selected_at = NOW
            self.assertIs(
                drawing.selection_state(reference_time=NOW + timedelta(seconds=1)),
                SelectionState.SELECTED,
            )

    def test_is_owned_by(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session)
            self.assertTrue(drawing.is_owned_by("host-1"))
            self.assertFalse(drawing.is_owned_by("host-2"))
            self.assertFalse(drawing.is_owned_by(None))

    def test_one_slot_row_per_number(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session, quantity_of_numbers=2500)
            SlotStore(session).initialize(drawing.id, drawing.quantity_of_numbers)

            numbers = session.scalars(
                select(NumberSlot.number)
                .where(NumberSlot.drawing_id == drawing.id)
                .order_by(NumberSlot.number)
            ).all()
            self.assertEqual(numbers, list(range(1, 2501)))

    def test_duplicate_slot_number_is_rejected(self):
        with self.Session() as session:
            drawing = self._drawing(session)
            session.add(NumberSlot(drawing_id=drawing.id, number=1))
            session.flush()
            session.add(NumberSlot(drawing_id=drawing.id, number=1))
            with self.assertRaises(IntegrityError):
                session.flush()
            session.rollback()

    def test_effective_status_treats_lapsed_reservation_as_available(self):
        slot = NumberSlot(
            drawing_id="d",
            number=7,
            status=SlotStatus.RESERVED,
            expires_at=NOW,
        )
        self.assertIs(
            slot.effective_status(reference_time=NOW - timedelta(seconds=1)),
            SlotStatus.RESERVED,
        )
        self.assertIs(slot.effective_status(reference_time=NOW), SlotStatus.AVAILABLE)

        taken = NumberSlot(drawing_id="d", number=8, status=SlotStatus.TAKEN)
        self.assertIs(taken.effective_status(reference_time=NOW), SlotStatus.TAKEN)
        self.assertFalse(taken.is_reservation_expired(reference_time=NOW))

    def test_effective_status_expr_matches_python_rule(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session)
            session.add_all(
                [
                    NumberSlot(
                        drawing_id=drawing.id,
                        number=1,
                        status=SlotStatus.RESERVED,
                        expires_at=NOW - timedelta(minutes=1),
                    ),
                    NumberSlot(
                        drawing_id=drawing.id,
                        number=2,
                        status=SlotStatus.RESERVED,
                        expires_at=NOW + timedelta(minutes=1),
                    ),
                    NumberSlot(drawing_id=drawing.id, number=3),
                ]
            )
            session.flush()

            rows = session.execute(
                select(NumberSlot.number, NumberSlot.effective_status_expr(NOW))
                .where(NumberSlot.drawing_id == drawing.id)
                .order_by(NumberSlot.number)
            ).all()
            self.assertEqual(
                [(number, SlotStatus(status)) for number, status in rows],
                [
                    (1, SlotStatus.AVAILABLE),
                    (2, SlotStatus.RESERVED),
                    (3, SlotStatus.AVAILABLE),
                ],
            )

    def test_eligibility_legacy_boolean_mapping(self):
        self.assertIs(Eligibility.from_is_eligible(None), Eligibility.PENDING)
        self.assertIs(Eligibility.from_is_eligible(True), Eligibility.APPROVED)
        self.assertIs(Eligibility.from_is_eligible(False), Eligibility.REJECTED)
        self.assertIsNone(Eligibility.PENDING.is_eligible)
        self.assertTrue(Eligibility.APPROVED.is_eligible)
        self.assertFalse(Eligibility.REJECTED.is_eligible)

    def test_deleting_drawing_cascades(self):
        with self.Session.begin() as session:
            drawing = self._drawing(session, quantity_of_numbers=5)
            SlotStore(session).initialize(drawing.id, 5)
            session.add(Participant(drawing_id=drawing.id, name="Ana", phone="1"))
            session.flush()
            drawing_id = drawing.id

        with self.Session.begin() as session:
            session.delete(session.get(Drawing, drawing_id))

        with self.Session() as session:
            self.assertEqual(
                session.scalar(select(func.count()).select_from(NumberSlot)), 0
            )
            self.assertEqual(
                session.scalar(select(func.count()).select_from(Participant)), 0
            )


if __name__ == "__main__":
    unittest.main()
