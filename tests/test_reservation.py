from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from eventpulse.core.exceptions import (
    AlreadyCancelled,
    InvalidRequest,
    NotFound,
    SeatUnavailable,
    TransientStorageFailure,
)
from eventpulse.core.security import ROLE_ADMIN, ROLE_USER
from eventpulse.models.booking import Booking, BookingSeat, BookingStatus, PaymentStatus
from eventpulse.models.seat import SeatStatus
from eventpulse.services.inventory import EventAggregate
from eventpulse.services.reservation import ReservationManager


class TestReserve:
    def test_reserve_books_all_requested_seats(self, db, manager, create_event, read_state):
        event, seats = create_event(
            seats=(("A", 1, "120.00"), ("A", 2, "120.00"), ("B", 1, "80.00"))
        )
        event_id = event.id
        seat_ids = [s.id for s in seats[:2]]
        payer = uuid4()

        booking = manager.reserve(db, event_id, seat_ids, payer)

        assert booking.status == BookingStatus.confirmed
        assert booking.user_id == payer
        assert booking.total_amount == Decimal("240.00")
        assert booking.booking_number.startswith("EVP-")

        links = db.query(BookingSeat).filter(BookingSeat.booking_id == booking.id).all()
        assert sorted(link.seat_id for link in links) == sorted(seat_ids)
        assert db.query(Booking).count() == 1

        available, statuses, booked = read_state(event_id, [s.id for s in seats])
        assert available == 1
        assert booked == 2
        assert statuses[seats[0].id] == SeatStatus.booked
        assert statuses[seats[1].id] == SeatStatus.booked
        assert statuses[seats[2].id] == SeatStatus.available

    def test_payment_status_follows_payment_reference(self, db, manager, two_seat_event):
        event, s1, s2 = two_seat_event

        paid = manager.reserve(db, event.id, [s1.id], uuid4(), payment_ref="pay_123")
        unpaid = manager.reserve(db, event.id, [s2.id], uuid4())

        assert paid.payment_status == PaymentStatus.completed
        assert paid.payment_id == "pay_123"
        assert unpaid.payment_status == PaymentStatus.pending
        assert unpaid.payment_id is None

    def test_link_price_is_copied_at_commit(self, db, manager, two_seat_event):
        event, s1, _ = two_seat_event
        booking = manager.reserve(db, event.id, [s1.id], uuid4())

        s1.price = Decimal("999.00")
        db.commit()

        link = db.query(BookingSeat).filter(BookingSeat.booking_id == booking.id).one()
        assert link.price == Decimal("100.00")

    def test_unavailable_seat_leaves_everything_unchanged(self, db, manager, two_seat_event, read_state):
        event, s1, s2 = two_seat_event
        event_id, s1_id, s2_id = event.id, s1.id, s2.id
        manager.reserve(db, event_id, [s1_id], uuid4())

        with pytest.raises(SeatUnavailable) as exc_info:
            manager.reserve(db, event_id, [s1_id, s2_id], uuid4())

        assert exc_info.value.seat_ids == [s1_id]
        assert exc_info.value.message == "One or more selected seats are not available"
        available, statuses, booked = read_state(event_id, [s1_id, s2_id])
        assert available == 1
        assert booked == 1
        assert statuses[s2_id] == SeatStatus.available
        assert db.query(Booking).count() == 1
        assert db.query(BookingSeat).count() == 1

    def test_empty_seat_list_is_rejected(self, db, manager, two_seat_event):
        event, _, _ = two_seat_event
        with pytest.raises(InvalidRequest):
            manager.reserve(db, event.id, [], uuid4())

    def test_duplicate_seat_ids_are_rejected(self, db, manager, two_seat_event):
        event, s1, _ = two_seat_event
        with pytest.raises(InvalidRequest):
            manager.reserve(db, event.id, [s1.id, s1.id], uuid4())

    def test_unknown_event(self, db, manager, two_seat_event):
        _, s1, _ = two_seat_event
        with pytest.raises(NotFound):
            manager.reserve(db, uuid4(), [s1.id], uuid4())

    def test_seat_from_another_event(self, db, manager, create_event, read_state):
        event_a, seats_a = create_event(title="A")
        event_b, seats_b = create_event(title="B")

        with pytest.raises(NotFound):
            manager.reserve(db, event_a.id, [seats_a[0].id, seats_b[0].id], uuid4())

        available, statuses, _ = read_state(event_a.id, [seats_a[0].id])
        assert available == 2
        assert statuses[seats_a[0].id] == SeatStatus.available

    def test_storage_failure_rolls_back(self, db, manager, two_seat_event, read_state):
        event, s1, s2 = two_seat_event
        event_id, seat_ids = event.id, [s1.id, s2.id]
        failure = OperationalError("COMMIT", {}, Exception("database is locked"))

        with patch.object(db, "commit", side_effect=failure):
            with pytest.raises(TransientStorageFailure):
                manager.reserve(db, event_id, seat_ids, uuid4())

        available, statuses, booked = read_state(event_id, seat_ids)
        assert available == 2
        assert booked == 0
        assert set(statuses.values()) == {SeatStatus.available}
        assert db.query(Booking).count() == 0

    def test_ticket_artifact_is_attached(self, db, manager, two_seat_event, tmp_path):
        event, s1, _ = two_seat_event
        booking = manager.reserve(db, event.id, [s1.id], uuid4())

        assert booking.ticket_ref == f"/uploads/tickets/booking-{booking.id}.json"
        assert (tmp_path / "tickets" / f"booking-{booking.id}.json").exists()

    def test_ticket_failure_keeps_booking(self, db, channel, two_seat_event, read_state):
        event, s1, _ = two_seat_event
        artifacts = MagicMock()
        artifacts.generate.side_effect = RuntimeError("renderer down")
        manager = ReservationManager(artifacts=artifacts, channel=channel)

        booking = manager.reserve(db, event.id, [s1.id], uuid4())

        assert booking.ticket_ref is None
        assert booking.status == BookingStatus.confirmed
        available, statuses, _ = read_state(event.id, [s1.id])
        assert available == 1
        assert statuses[s1.id] == SeatStatus.booked

    def test_booked_notification_is_published(self, db, two_seat_event):
        event, s1, s2 = two_seat_event
        channel = MagicMock()
        manager = ReservationManager(channel=channel)

        manager.reserve(db, event.id, [s1.id, s2.id], uuid4())

        channel.publish_booked.assert_called_once_with(event.id, [s1.id, s2.id])

    def test_no_notification_when_reservation_fails(self, db, two_seat_event):
        event, s1, _ = two_seat_event
        channel = MagicMock()
        manager = ReservationManager(channel=channel)
        manager.reserve(db, event.id, [s1.id], uuid4())
        channel.reset_mock()

        with pytest.raises(SeatUnavailable):
            manager.reserve(db, event.id, [s1.id], uuid4())

        channel.publish_booked.assert_not_called()


class TestCancel:
    def test_cancel_releases_seats_and_counter(self, db, manager, two_seat_event, read_state):
        event, s1, s2 = two_seat_event
        event_id, seat_ids = event.id, [s1.id, s2.id]
        payer = uuid4()
        booking = manager.reserve(db, event_id, seat_ids, payer)

        cancelled = manager.cancel(db, booking.id, payer, ROLE_USER)

        assert cancelled.status == BookingStatus.cancelled
        assert cancelled.cancelled_at is not None
        available, statuses, booked = read_state(event_id, seat_ids)
        assert available == 2
        assert booked == 0
        assert set(statuses.values()) == {SeatStatus.available}

    def test_second_cancel_is_already_cancelled(self, db, manager, two_seat_event, read_state):
        event, s1, _ = two_seat_event
        payer = uuid4()
        booking = manager.reserve(db, event.id, [s1.id], payer)
        manager.cancel(db, booking.id, payer, ROLE_USER)

        with pytest.raises(AlreadyCancelled):
            manager.cancel(db, booking.id, payer, ROLE_USER)

        available, _, _ = read_state(event.id, [s1.id])
        assert available == 2

    def test_other_user_cannot_cancel(self, db, manager, two_seat_event, read_state):
        event, s1, _ = two_seat_event
        booking = manager.reserve(db, event.id, [s1.id], uuid4())

        with pytest.raises(NotFound):
            manager.cancel(db, booking.id, uuid4(), ROLE_USER)

        available, statuses, _ = read_state(event.id, [s1.id])
        assert available == 1
        assert statuses[s1.id] == SeatStatus.booked

    def test_admin_can_cancel_any_booking(self, db, manager, two_seat_event):
        event, s1, _ = two_seat_event
        booking = manager.reserve(db, event.id, [s1.id], uuid4())

        cancelled = manager.cancel(db, booking.id, uuid4(), ROLE_ADMIN)

        assert cancelled.status == BookingStatus.cancelled

    def test_unknown_booking(self, db, manager):
        with pytest.raises(NotFound):
            manager.cancel(db, uuid4(), uuid4(), ROLE_ADMIN)

    def test_storage_failure_keeps_booking_confirmed(self, db, manager, two_seat_event, read_state):
        event, s1, _ = two_seat_event
        payer = uuid4()
        booking = manager.reserve(db, event.id, [s1.id], payer)
        booking_id, event_id, s1_id = booking.id, event.id, s1.id
        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch.object(db, "commit", side_effect=failure):
            with pytest.raises(TransientStorageFailure):
                manager.cancel(db, booking_id, payer, ROLE_USER)

        available, statuses, _ = read_state(event_id, [s1_id])
        assert available == 1
        assert statuses[s1_id] == SeatStatus.booked
        assert db.get(Booking, booking_id).status == BookingStatus.confirmed

    def test_released_notification_is_published(self, db, two_seat_event):
        event, s1, _ = two_seat_event
        channel = MagicMock()
        manager = ReservationManager(channel=channel)
        payer = uuid4()
        booking = manager.reserve(db, event.id, [s1.id], payer)

        manager.cancel(db, booking.id, payer, ROLE_USER)

        channel.publish_released.assert_called_once_with(event.id, [s1.id])


class TestScenario:
    def test_two_clients_two_seats(self, db, manager, two_seat_event, read_state):
        event, s1, s2 = two_seat_event
        event_id, s1_id, s2_id = event.id, s1.id, s2.id
        client_a, client_b = uuid4(), uuid4()

        booking_a = manager.reserve(db, event_id, [s1_id], client_a)
        available, statuses, _ = read_state(event_id, [s1_id, s2_id])
        assert available == 1
        assert statuses[s1_id] == SeatStatus.booked

        with pytest.raises(SeatUnavailable):
            manager.reserve(db, event_id, [s1_id, s2_id], client_b)
        available, statuses, _ = read_state(event_id, [s1_id, s2_id])
        assert available == 1
        assert statuses[s2_id] == SeatStatus.available

        manager.reserve(db, event_id, [s2_id], client_b)
        available, _, _ = read_state(event_id, [s1_id, s2_id])
        assert available == 0

        manager.cancel(db, booking_a.id, client_a, ROLE_USER)
        available, statuses, _ = read_state(event_id, [s1_id, s2_id])
        assert available == 1
        assert statuses[s1_id] == SeatStatus.available
        assert statuses[s2_id] == SeatStatus.booked

    def test_reserve_then_cancel_restores_counter(self, db, manager, create_event):
        event, seats = create_event(
            seats=tuple(("C", n, "40.00") for n in range(1, 6))
        )
        aggregate = EventAggregate(db)
        before = aggregate.get_availability(event.id)
        payer = uuid4()

        booking = manager.reserve(db, event.id, [s.id for s in seats[1:4]], payer)
        assert aggregate.get_availability(event.id).available == before.available - 3

        manager.cancel(db, booking.id, payer, ROLE_USER)
        assert aggregate.get_availability(event.id) == before
