from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.core import mail

from apps.bookings import engine
from apps.bookings.exceptions import (
    DuplicateBookingError,
    InvalidTransition,
    NotFoundError,
    PastDateError,
    PermissionDenied,
    SlotUnavailable,
    ValidationError,
)
from apps.bookings.models import Booking, BookingStatus
from apps.bookings.parties import (
    BookingRequest,
    CustomerActor,
    GuestParty,
    RegisteredParty,
    RescheduleChanges,
)
from apps.businesses.models import Business
from apps.notifications import emails
from apps.services.models import Service
from apps.staff.models import Staff
from tests.clock import TODAY, TOMORROW, YESTERDAY, at

pytestmark = pytest.mark.django_db


# ── Creation ─────────────────────────────────────────────────────────────────

def test_customer_booking_snapshots_the_service(customer_booking, customer, service):
    assert customer_booking.status == BookingStatus.CONFIRMED
    assert customer_booking.customer == customer
    assert not customer_booking.is_guest_booking
    assert customer_booking.guest_lookup_token is None
    assert customer_booking.estimated_duration == 60
    assert customer_booking.price_snapshot == Decimal('500.00')

    service.duration_minutes = 90
    service.save()
    customer_booking.refresh_from_db()
    assert customer_booking.estimated_duration == 60


def test_guest_booking_cleans_contact_details(guest_booking):
    assert guest_booking.is_guest_booking
    assert guest_booking.customer is None
    assert guest_booking.customer_email == 'malee@example.com'
    assert guest_booking.customer_phone == '0812345678'
    assert len(guest_booking.guest_lookup_token) == 32


def test_past_date_is_rejected(book, customer):
    with pytest.raises(PastDateError):
        book(RegisteredParty(customer), booking_date=YESTERDAY)


def test_today_is_bookable(book, customer):
    booking = book(RegisteredParty(customer), booking_date=TODAY, booking_time=time(15, 0))
    assert booking.is_today


def test_time_slot_needs_a_time(customer, business, service):
    request = BookingRequest(
        party=RegisteredParty(customer), business_id=business.pk,
        service_id=service.pk, booking_date=TOMORROW,
    )
    with pytest.raises(ValidationError):
        engine.create_booking(request)


def test_unknown_type_is_rejected(book, customer):
    with pytest.raises(ValidationError):
        book(RegisteredParty(customer), type='WALK_IN')


def test_anonymous_user_is_not_a_customer(book):
    from django.contrib.auth.models import AnonymousUser
    with pytest.raises(ValidationError):
        book(RegisteredParty(AnonymousUser()))


def test_invalid_guest_phone_is_rejected(book):
    with pytest.raises(ValidationError):
        book(GuestParty(name='Malee', email='malee@example.com', phone='12'))


def test_inactive_business_is_not_found(book, customer, business):
    Business.objects.filter(pk=business.pk).update(is_active=False)
    with pytest.raises(NotFoundError):
        book(RegisteredParty(customer))


def test_inactive_service_is_not_found(book, customer, service):
    Service.objects.filter(pk=service.pk).update(is_active=False)
    with pytest.raises(NotFoundError):
        book(RegisteredParty(customer))


def test_staff_of_another_business_is_not_found(book, customer, make_customer):
    elsewhere = Business.objects.create(owner=make_customer(), name='Other Spa')
    stranger = Staff.objects.create(business=elsewhere, name='Stranger')
    with pytest.raises(NotFoundError):
        book(RegisteredParty(customer), staff=stranger)


def test_one_booking_per_customer_per_day(book, customer):
    book(RegisteredParty(customer), booking_time=time(10, 0))

    with pytest.raises(DuplicateBookingError):
        book(RegisteredParty(customer), booking_time=time(16, 0))
    with pytest.raises(DuplicateBookingError):
        book(RegisteredParty(customer), type='QUEUE_NUMBER')


def test_guest_duplicate_is_matched_on_phone(book, guest_booking):
    same_phone = GuestParty(name='Malee', email='other@example.com', phone='+66 81 234 5678')
    with pytest.raises(DuplicateBookingError):
        book(same_phone, booking_time=time(10, 0))


def test_cancelled_booking_does_not_count_as_duplicate(book, customer, customer_booking):
    customer_booking.cancel('changed plans')

    again = book(RegisteredParty(customer), booking_time=time(16, 0))
    assert again.status == BookingStatus.CONFIRMED


def test_created_notification_goes_out_after_commit(book, guest_party,
                                                    django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        booking = book(guest_party)

    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ['malee@example.com']
    assert booking.guest_lookup_token in mail.outbox[0].body


def test_notification_failure_keeps_the_booking(book, customer, monkeypatch,
                                                django_capture_on_commit_callbacks):
    def broken(booking):
        raise RuntimeError('mail server down')
    monkeypatch.setitem(emails._SENDERS, 'created', broken)

    with django_capture_on_commit_callbacks(execute=True):
        booking = book(RegisteredParty(customer))

    assert Booking.objects.filter(pk=booking.pk, status=BookingStatus.CONFIRMED).exists()


# ── Lookup ───────────────────────────────────────────────────────────────────

def test_owner_can_read_their_booking(customer_booking, customer):
    assert engine.get_booking(customer_booking.pk, CustomerActor(customer)) == customer_booking


def test_other_customer_sees_not_found(customer_booking, make_customer):
    with pytest.raises(NotFoundError):
        engine.get_booking(customer_booking.pk, CustomerActor(make_customer()))


def test_malformed_id_is_not_found(customer):
    with pytest.raises(NotFoundError):
        engine.get_booking('not-a-uuid', CustomerActor(customer))


def test_list_bookings_newest_first_with_filter(book, customer):
    party = RegisteredParty(customer)
    first = book(party, booking_date=TOMORROW)
    second = book(party, booking_date=TOMORROW + timedelta(days=1))
    second.cancel('double booked')

    actor = CustomerActor(customer)
    assert list(engine.list_bookings(actor)) == [second, first]
    assert list(engine.list_bookings(actor, status='CONFIRMED')) == [first]
    assert list(engine.list_bookings(actor, limit=1)) == [second]

    with pytest.raises(ValidationError):
        engine.list_bookings(actor, status='LOST')


# ── Reschedule ───────────────────────────────────────────────────────────────

def test_reschedule_moves_the_booking_and_logs_it(customer_booking, customer, staff_s1):
    moved = engine.reschedule_booking(
        customer_booking.pk,
        RescheduleChanges(booking_time=time(16, 0), staff_id=staff_s1.pk, notes='window seat'),
        CustomerActor(customer),
    )

    moved.refresh_from_db()
    assert moved.booking_time == time(16, 0)
    assert moved.staff == staff_s1
    assert moved.notes == 'window seat'
    assert moved.status == BookingStatus.CONFIRMED
    log = moved.status_logs.get()
    assert log.from_status == log.to_status == BookingStatus.CONFIRMED
    assert log.reason.startswith('Rescheduled from 2030-03-05 14:00')


def test_reschedule_can_overlap_its_own_old_slot(customer_booking, customer):
    moved = engine.reschedule_booking(
        customer_booking.pk, RescheduleChanges(booking_time=time(14, 30)), CustomerActor(customer),
    )
    assert moved.booking_time == time(14, 30)


def test_notes_only_change_is_not_a_reschedule(customer_booking, customer,
                                               django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        updated = engine.reschedule_booking(
            customer_booking.pk,
            RescheduleChanges(booking_date=TOMORROW, booking_time=time(14, 0), notes='ground floor'),
            CustomerActor(customer),
        )

    updated.refresh_from_db()
    assert updated.notes == 'ground floor'
    assert updated.booking_time == time(14, 0)
    assert not updated.status_logs.exists()
    assert callbacks == []
    assert mail.outbox == []


def test_reschedule_into_taken_slot(book, make_customer, customer_booking, customer):
    book(RegisteredParty(make_customer()), booking_time=time(16, 0))

    with pytest.raises(SlotUnavailable):
        engine.reschedule_booking(
            customer_booking.pk, RescheduleChanges(booking_time=time(16, 30)), CustomerActor(customer),
        )


def test_reschedule_to_past_date(customer_booking, customer):
    with pytest.raises(PastDateError):
        engine.reschedule_booking(
            customer_booking.pk, RescheduleChanges(booking_date=YESTERDAY), CustomerActor(customer),
        )


def test_reschedule_needs_a_change(customer_booking, customer):
    with pytest.raises(ValidationError):
        engine.reschedule_booking(customer_booking.pk, RescheduleChanges(), CustomerActor(customer))


def test_cancelled_booking_cannot_be_rescheduled(customer_booking, customer):
    actor = CustomerActor(customer)
    engine.cancel_booking(customer_booking.pk, 'no longer needed', actor)

    with pytest.raises(InvalidTransition):
        engine.reschedule_booking(customer_booking.pk, RescheduleChanges(booking_time=time(16, 0)), actor)

    customer_booking.refresh_from_db()
    assert customer_booking.status == BookingStatus.CANCELLED


def test_only_the_owner_can_reschedule(customer_booking, make_customer):
    with pytest.raises(NotFoundError):
        engine.reschedule_booking(
            customer_booking.pk, RescheduleChanges(booking_time=time(16, 0)),
            CustomerActor(make_customer()),
        )


def test_reschedule_onto_a_day_already_booked(book, customer, customer_booking):
    book(RegisteredParty(customer), booking_date=TOMORROW + timedelta(days=1))

    with pytest.raises(DuplicateBookingError):
        engine.reschedule_booking(
            customer_booking.pk,
            RescheduleChanges(booking_date=TOMORROW + timedelta(days=1), booking_time=time(9, 0)),
            CustomerActor(customer),
        )


def test_queue_ticket_moved_to_another_day_joins_that_queue(book, customer, make_customer):
    later = TOMORROW + timedelta(days=1)
    book(RegisteredParty(make_customer()), booking_date=later, type='QUEUE_NUMBER')
    ticket = book(RegisteredParty(customer), type='QUEUE_NUMBER')
    assert ticket.queue_number == 1

    moved = engine.reschedule_booking(ticket.pk, RescheduleChanges(booking_date=later),
                                      CustomerActor(customer))
    assert moved.booking_date == later
    assert moved.queue_number == 2


def test_queue_number_of_a_moved_ticket_is_not_reused(book, customer, make_customer):
    later = TOMORROW + timedelta(days=1)
    book(RegisteredParty(make_customer()), type='QUEUE_NUMBER')
    second = book(RegisteredParty(customer), type='QUEUE_NUMBER')
    assert second.queue_number == 2

    moved = engine.reschedule_booking(second.pk, RescheduleChanges(booking_date=later),
                                      CustomerActor(customer))
    assert moved.queue_number == 1

    third = book(RegisteredParty(make_customer()), type='QUEUE_NUMBER')
    assert third.queue_number == 3


def test_queue_number_of_a_cancelled_ticket_is_not_reused(book, customer, make_customer):
    book(RegisteredParty(make_customer()), type='QUEUE_NUMBER')
    second = book(RegisteredParty(customer), type='QUEUE_NUMBER')
    engine.cancel_booking(second.pk, 'plans changed', CustomerActor(customer))

    assert book(RegisteredParty(make_customer()), type='QUEUE_NUMBER').queue_number == 3


def test_queue_ticket_cannot_be_given_a_time(book, customer):
    ticket = book(RegisteredParty(customer), type='QUEUE_NUMBER')

    with pytest.raises(ValidationError):
        engine.reschedule_booking(ticket.pk, RescheduleChanges(booking_time=time(10, 0)),
                                  CustomerActor(customer))


# ── Business side ────────────────────────────────────────────────────────────

def test_business_owner_checks_in(book, customer, owner):
    booking = book(RegisteredParty(customer), booking_date=TODAY, booking_time=time(10, 0))

    checked_in = engine.business_transition(booking.pk, 'check_in', owner)
    assert checked_in.status == BookingStatus.CHECKED_IN
    assert checked_in.status_logs.get().changed_by == 'business'


def test_other_users_cannot_drive_the_booking(customer_booking, customer):
    with pytest.raises(PermissionDenied):
        engine.business_transition(customer_booking.pk, 'check_in', customer)


def test_business_cancel_notifies_the_customer(customer_booking, owner,
                                               django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        engine.business_transition(customer_booking.pk, 'cancel', owner, reason='closed today')

    assert len(mail.outbox) == 1
    assert 'closed today' in mail.outbox[0].body


# ── Queue board ──────────────────────────────────────────────────────────────

def test_queue_status_board(book, make_customer, business, owner):
    tickets = [
        book(RegisteredParty(make_customer()), booking_date=TODAY, type='QUEUE_NUMBER')
        for _ in range(3)
    ]
    engine.business_transition(tickets[0].pk, 'check_in', owner)
    engine.business_transition(tickets[0].pk, 'start_service', owner)

    board = engine.get_queue_status(business.pk, TODAY)

    assert board['business_name'] == 'Baan Spa'
    assert board['current_serving'] == 1
    assert board['total_queue'] == 3
    assert board['average_wait_time'] == 30
    assert board['estimated_wait_time'] == 60
    assert [item['queue_number'] for item in board['queue']] == [1, 2, 3]


def test_queue_board_prefers_the_ticket_being_served(book, make_customer, business, owner,
                                                      staff_s1):
    appointment = book(RegisteredParty(make_customer()), booking_date=TODAY,
                       booking_time=time(9, 0), staff=staff_s1)
    engine.business_transition(appointment.pk, 'check_in', owner)
    engine.business_transition(appointment.pk, 'start_service', owner)
    tickets = [
        book(RegisteredParty(make_customer()), booking_date=TODAY, type='QUEUE_NUMBER')
        for _ in range(3)
    ]
    engine.business_transition(tickets[1].pk, 'check_in', owner)
    engine.business_transition(tickets[2].pk, 'check_in', owner)

    board = engine.get_queue_status(business.pk, TODAY)

    # No ticket in service: the first checked-in ticket is up next
    assert board['current_serving'] == 2
    assert board['total_queue'] == 3
    assert board['estimated_wait_time'] == 30


def test_queue_board_counts_checked_in_tickets_as_waiting(book, make_customer, business, owner):
    tickets = [
        book(RegisteredParty(make_customer()), booking_date=TODAY, type='QUEUE_NUMBER')
        for _ in range(3)
    ]
    for ticket in tickets:
        engine.business_transition(ticket.pk, 'check_in', owner)
    engine.business_transition(tickets[0].pk, 'start_service', owner)

    board = engine.get_queue_status(business.pk, TODAY)

    assert board['current_serving'] == 1
    assert board['estimated_wait_time'] == 60


def test_queue_average_uses_completed_services(book, make_customer, business, owner, freeze):
    tickets = [
        book(RegisteredParty(make_customer()), booking_date=TODAY, type='QUEUE_NUMBER')
        for _ in range(2)
    ]
    first = tickets[0].pk
    engine.business_transition(first, 'check_in', owner)
    freeze(at(9, 0))
    engine.business_transition(first, 'start_service', owner)
    freeze(at(9, 40))
    engine.business_transition(first, 'finish_service', owner)

    board = engine.get_queue_status(business.pk, TODAY)
    assert board['current_serving'] == 2
    assert board['average_wait_time'] == 40
    assert board['estimated_wait_time'] == 0


def test_queue_status_for_unknown_business(db):
    with pytest.raises(NotFoundError):
        engine.get_queue_status('00000000-0000-0000-0000-000000000000', TODAY)
