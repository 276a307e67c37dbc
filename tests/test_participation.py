import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from giway.db.engine import get_sessionmaker, make_engine
from giway.exceptions import (
    DrawingNotFound,
    Forbidden,
    ParticipantNotFound,
    ReservationExpiredOrTaken,
    ValidationError,
)
from giway.models import Base, Eligibility, Participant, SlotStatus
from giway.participation import (
    EligibilityManager,
    ParticipantDraft,
    ParticipationConfirmer,
)
from giway.slots import ReservationManager, SlotStore
from giway.workflows import create_drawing

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class ParticipationTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self):
        self.engine.dispose()

    def _create(self, **overrides) -> str:
        values = dict(
            owner_id="host-1",
            title="Raffle",
            end_at=NOW + timedelta(days=1),
            play_with_numbers=True,
            quantity_of_numbers=50,
        )
        values.update(overrides)
        with self.Session.begin() as session:
            return create_drawing(session, **values).id

    def _join(self, session, drawing_id, numbers, holder, name="Ana"):
        if numbers:
            ReservationManager(session).reserve_many(
                drawing_id, numbers, holder=holder, now=NOW
            )
        return ParticipationConfirmer(session).confirm(
            drawing_id,
            numbers,
            ParticipantDraft(name=name, phone="555-0100"),
            holder=holder,
            now=NOW,
        )

    def _slot(self, session, drawing_id, number):
        slot = SlotStore(session).get_slot(drawing_id, number)
        assert slot is not None
        return slot

    def test_confirm_binds_reserved_numbers(self):
        drawing_id = self._create()
        with self.Session.begin() as session:
            participant = self._join(session, drawing_id, [3, 4], "cart-a")
            self.assertIs(participant.eligibility, Eligibility.APPROVED)
            self.assertEqual(participant.selected_number, 3)

            for number in (3, 4):
                slot = self._slot(session, drawing_id, number)
                self.assertIs(slot.status, SlotStatus.TAKEN)
                self.assertEqual(slot.participant_id, participant.id)
                self.assertIsNone(slot.expires_at)

    def test_paid_drawing_registers_pending(self):
        drawing_id = self._create(is_paid=True, price=500)
        with self.Session.begin() as session:
            participant = self._join(session, drawing_id, [1], "cart-a")
            self.assertIs(participant.eligibility, Eligibility.PENDING)
            self.assertIsNone(participant.is_eligible)

    def test_confirm_is_all_or_nothing(self):
        drawing_id = self._create()
        with self.Session.begin() as session:
            ReservationManager(session).reserve_many(
                drawing_id, [3, 5], holder="cart-a", now=NOW
            )
            self._join(session, drawing_id, [4], "cart-b", name="Bea")

        with self.Session.begin() as session:
            with self.assertRaises(ReservationExpiredOrTaken) as ctx:
                ParticipationConfirmer(session).confirm(
                    drawing_id,
                    [3, 4, 5],
                    ParticipantDraft(name="Ana", phone="555"),
                    holder="cart-a",
                    now=NOW,
                )
            self.assertEqual(ctx.exception.number, 4)

        with self.Session() as session:
            self.assertEqual(
                session.scalar(select(func.count()).select_from(Participant)), 1
            )
            for number in (3, 5):
                slot = self._slot(session, drawing_id, number)
                self.assertIs(slot.status, SlotStatus.RESERVED)
                self.assertEqual(slot.reserved_by, "cart-a")
                self.assertIsNone(slot.participant_id)

    def test_lapsed_reservation_cannot_be_confirmed(self):
        drawing_id = self._create()
        with self.Session.begin() as session:
            ReservationManager(session).reserve(
                drawing_id, 6, ttl_minutes=1, holder="cart-a", now=NOW
            )
            with self.assertRaises(ReservationExpiredOrTaken):
                ParticipationConfirmer(session).confirm(
                    drawing_id,
                    [6],
                    ParticipantDraft(name="Ana", phone="555"),
                    holder="cart-a",
                    now=NOW + timedelta(minutes=2),
                )

    def test_other_holder_cannot_confirm(self):
        drawing_id = self._create()
        with self.Session.begin() as session:
            ReservationManager(session).reserve(drawing_id, 6, holder="cart-a", now=NOW)
            with self.assertRaises(ReservationExpiredOrTaken):
                ParticipationConfirmer(session).confirm(
                    drawing_id,
                    [6],
                    ParticipantDraft(name="Bea", phone="555"),
                    holder="cart-b",
                    now=NOW,
                )

    def test_available_number_cannot_be_confirmed(self):
        drawing_id = self._create()
        with self.Session.begin() as session:
            with self.assertRaises(ReservationExpiredOrTaken):
                ParticipationConfirmer(session).confirm(
                    drawing_id,
                    [8],
                    ParticipantDraft(name="Ana", phone="555"),
                    now=NOW,
                )

    def test_input_validation(self):
        drawing_id = self._create()
        giveaway_id = self._create(play_with_numbers=False, quantity_of_numbers=0)
        draft = ParticipantDraft(name="Ana", phone="555")
        with self.Session.begin() as session:
            confirmer = ParticipationConfirmer(session)
            with self.assertRaises(ValidationError):
                confirmer.confirm(drawing_id, [1], ParticipantDraft(name=" ", phone="5"))
            with self.assertRaises(ValidationError):
                confirmer.confirm(drawing_id, [1], ParticipantDraft(name="Ana", phone=""))
            with self.assertRaises(ValidationError):
                confirmer.confirm(drawing_id, [], draft)
            with self.assertRaises(ValidationError):
                confirmer.confirm(drawing_id, [2, 2], draft)
            with self.assertRaises(ValidationError):
                confirmer.confirm(drawing_id, [51], draft)
            with self.assertRaises(ValidationError):
                confirmer.confirm(giveaway_id, [1], draft)
            with self.assertRaises(DrawingNotFound):
                confirmer.confirm("missing", None, draft)

    def test_draft_is_cleaned(self):
        cleaned = ParticipantDraft(
            name="  Ana  ", phone=" 555 ", email="  "
        ).cleaned()
        self.assertEqual(cleaned.name, "Ana")
        self.assertEqual(cleaned.phone, "555")
        self.assertIsNone(cleaned.email)
        with self.assertRaises(ValidationError):
            ParticipantDraft(name="Ana", phone="555", email="not-an-email").cleaned()

    def test_numberless_entries_are_numbered_sequentially(self):
        giveaway_id = self._create(play_with_numbers=False, quantity_of_numbers=0)
        with self.Session.begin() as session:
            numbers = [
                self._join(session, giveaway_id, None, None, name=name).selected_number
                for name in ("Ana", "Bea", "Cai")
            ]
        self.assertEqual(numbers, [1, 2, 3])

        with self.Session.begin() as session:
            self.assertEqual(
                self._join(session, giveaway_id, None, None, name="Dee").selected_number,
                4,
            )


class EligibilityTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

        with self.Session.begin() as session:
            drawing = create_drawing(
                session,
                owner_id="host-1",
                title="Paid raffle",
                end_at=NOW + timedelta(days=1),
                play_with_numbers=True,
                quantity_of_numbers=50,
                is_paid=True,
            )
            self.drawing_id = drawing.id
            ReservationManager(session).reserve_many(
                drawing.id, [12, 45], holder="cart-a", now=NOW
            )
            participant = ParticipationConfirmer(session).confirm(
                drawing.id,
                [12, 45],
                ParticipantDraft(name="Ana", phone="555"),
                holder="cart-a",
                now=NOW,
            )
            self.participant_id = participant.id

    def tearDown(self):
        self.engine.dispose()

    def test_reject_releases_numbers(self):
        with self.Session.begin() as session:
            participant = EligibilityManager(session).set_eligibility(
                self.participant_id, "rejected", acting_user_id="host-1"
            )
            self.assertIs(participant.eligibility, Eligibility.REJECTED)
            self.assertEqual(participant.log_numbers, [12, 45])

        with self.Session.begin() as session:
            store = SlotStore(session)
            for number in (12, 45):
                slot = store.get_slot(self.drawing_id, number)
                assert slot is not None
                self.assertIs(slot.status, SlotStatus.AVAILABLE)
                self.assertIsNone(slot.participant_id)
            self.assertEqual(store.participant_numbers(self.drawing_id, self.participant_id), [])

            ReservationManager(session).reserve(
                self.drawing_id, 12, holder="cart-b", now=NOW
            )

    def test_approve_keeps_numbers(self):
        with self.Session.begin() as session:
            participant = EligibilityManager(session).set_eligibility(
                self.participant_id, Eligibility.APPROVED
            )
            self.assertTrue(participant.is_eligible)
            self.assertIsNone(participant.log_numbers)
            self.assertEqual(
                SlotStore(session).participant_numbers(
                    self.drawing_id, self.participant_id
                ),
                [12, 45],
            )

    def test_only_owner_may_review(self):
        with self.Session.begin() as session:
            with self.assertRaises(Forbidden):
                EligibilityManager(session).set_eligibility(
                    self.participant_id, "rejected", acting_user_id="intruder"
                )

        with self.Session() as session:
            participant = Participant.get_by_id(session, self.participant_id)
            assert participant is not None
            self.assertIs(participant.eligibility, Eligibility.PENDING)

    def test_unknown_participant_and_status(self):
        with self.Session.begin() as session:
            manager = EligibilityManager(session)
            with self.assertRaises(ParticipantNotFound):
                manager.set_eligibility(9999, "approved")
            with self.assertRaises(ValidationError):
                manager.set_eligibility(self.participant_id, "maybe")


if __name__ == "__main__":
    unittest.main()
