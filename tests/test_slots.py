import random
import unittest
from datetime import datetime, timedelta, timezone

from giway.db.engine import get_sessionmaker, make_engine
from giway.exceptions import ValidationError
from giway.models import Base, SlotStatus
from giway.participation import ParticipantDraft, ParticipationConfirmer
from giway.slots import ReservationManager, SlotStore
from giway.workflows import create_drawing

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class SlotStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

        with self.Session.begin() as session:
            drawing = create_drawing(
                session,
                owner_id="host-1",
                title="Slots",
                end_at=NOW + timedelta(days=1),
                play_with_numbers=True,
                quantity_of_numbers=25,
            )
            self.drawing_id = drawing.id

    def tearDown(self):
        self.engine.dispose()

    def test_initialize_rejects_out_of_range_quantity(self):
        with self.Session.begin() as session:
            store = SlotStore(session)
            with self.assertRaises(ValidationError):
                store.initialize(self.drawing_id, 0)
            with self.assertRaises(ValidationError):
                store.initialize(self.drawing_id, 10_001)

    def test_initialize_twice_is_rejected(self):
        with self.Session.begin() as session:
            with self.assertRaises(ValidationError):
                SlotStore(session).initialize(self.drawing_id, 25)

    def test_pagination(self):
        with self.Session() as session:
            store = SlotStore(session)
            first = store.list_slots(self.drawing_id, page=1, page_size=10, now=NOW)
            self.assertEqual([slot.number for slot in first.slots], list(range(1, 11)))
            self.assertTrue(first.has_more)
            self.assertEqual(first.next_page, 2)
            self.assertEqual(first.total_count, 25)

            last = store.list_slots(self.drawing_id, page=3, page_size=10, now=NOW)
            self.assertEqual([slot.number for slot in last.slots], list(range(21, 26)))
            self.assertFalse(last.has_more)
            self.assertIsNone(last.next_page)

    def test_page_size_limits(self):
        with self.Session() as session:
            store = SlotStore(session)
            with self.assertRaises(ValidationError):
                store.list_slots(self.drawing_id, page_size=1001)
            with self.assertRaises(ValidationError):
                store.list_slots(self.drawing_id, page=0)

    def test_listing_and_stats_report_lapsed_reservations_as_available(self):
        with self.Session.begin() as session:
            manager = ReservationManager(session)
            manager.reserve(self.drawing_id, 3, ttl_minutes=1, now=NOW)
            manager.reserve(self.drawing_id, 4, ttl_minutes=30, now=NOW)

        later = NOW + timedelta(minutes=5)
        with self.Session() as session:
            store = SlotStore(session)
            page = store.list_slots(self.drawing_id, numbers=[3, 4], now=later)
            by_number = {slot.number: slot for slot in page.slots}
            self.assertIs(by_number[3].status, SlotStatus.AVAILABLE)
            self.assertIsNone(by_number[3].expires_at)
            self.assertIs(by_number[4].status, SlotStatus.RESERVED)
            self.assertEqual(by_number[4].expires_at, NOW + timedelta(minutes=30))

            stats = store.stats(self.drawing_id, now=later)
            self.assertEqual(stats.total, 25)
            self.assertEqual(stats.available, 24)
            self.assertEqual(stats.reserved, 1)
            self.assertEqual(stats.taken, 0)

            reserved = store.list_slots(
                self.drawing_id, status=SlotStatus.RESERVED, now=later
            )
            self.assertEqual([slot.number for slot in reserved.slots], [4])

    def test_taken_slots_show_participant(self):
        with self.Session.begin() as session:
            ReservationManager(session).reserve(
                self.drawing_id, 9, holder="cart-1", now=NOW
            )
            participant = ParticipationConfirmer(session).confirm(
                self.drawing_id,
                [9],
                ParticipantDraft(name="Ana", phone="555"),
                holder="cart-1",
                now=NOW,
            )
            participant_id = participant.id

        with self.Session() as session:
            store = SlotStore(session)
            page = store.list_slots(self.drawing_id, numbers=[9], now=NOW)
            (slot,) = page.slots
            self.assertIs(slot.status, SlotStatus.TAKEN)
            self.assertEqual(slot.participant_id, participant_id)
            self.assertEqual(slot.participant_name, "Ana")

            stats = store.stats(self.drawing_id, now=NOW)
            self.assertEqual(stats.taken, 1)
            self.assertEqual(stats.percentage_taken, 4.0)
            self.assertEqual(store.participant_numbers(self.drawing_id, participant_id), [9])

    def test_random_available_number(self):
        with self.Session.begin() as session:
            manager = ReservationManager(session)
            for number in range(1, 25):
                manager.reserve(self.drawing_id, number, now=NOW)

        with self.Session() as session:
            store = SlotStore(session)
            self.assertEqual(
                store.random_available_number(
                    self.drawing_id, rng=random.Random(1), now=NOW
                ),
                25,
            )
            self.assertTrue(store.is_number_available(self.drawing_id, 25, now=NOW))
            self.assertFalse(store.is_number_available(self.drawing_id, 1, now=NOW))

        with self.Session.begin() as session:
            ReservationManager(session).reserve(self.drawing_id, 25, now=NOW)

        with self.Session() as session:
            self.assertIsNone(
                SlotStore(session).random_available_number(self.drawing_id, now=NOW)
            )


if __name__ == "__main__":
    unittest.main()
