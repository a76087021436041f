"""
Races between requests for the same business. Each call runs in its own
thread with its own database connection, released together by a barrier.

SQLite ignores SELECT ... FOR UPDATE, so these only run against PostgreSQL:
  DATABASE_URL=postgres://... pytest tests/test_concurrency.py
"""
import threading
from datetime import time

import pytest
from django.db import connection

from apps.bookings import engine
from apps.bookings.exceptions import SlotUnavailable
from apps.bookings.models import Booking
from apps.bookings.parties import CustomerActor, RegisteredParty, RescheduleChanges
from tests.clock import TOMORROW

pytestmark = [
    pytest.mark.django_db(transaction=True),
    pytest.mark.skipif(connection.vendor != 'postgresql', reason='needs row locks'),
]


def run_together(*calls):
    """Start every call at the same moment; collect (results, errors)."""
    barrier = threading.Barrier(len(calls))
    results, errors = [], []

    def worker(call):
        try:
            barrier.wait()
            results.append(call())
        except Exception as exc:
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


def test_same_slot_is_sold_once(book, make_customer, staff_s1):
    parties = [RegisteredParty(make_customer()) for _ in range(2)]

    results, errors = run_together(
        *[lambda p=p: book(p, booking_time=time(14, 0), staff=staff_s1) for p in parties]
    )

    assert len(results) == 1
    assert [type(e) for e in errors] == [SlotUnavailable]
    assert Booking.objects.filter(booking_date=TOMORROW, booking_time=time(14, 0)).count() == 1


def test_simultaneous_tickets_get_distinct_numbers(book, make_customer):
    parties = [RegisteredParty(make_customer()) for _ in range(2)]

    results, errors = run_together(
        *[lambda p=p: book(p, type='QUEUE_NUMBER') for p in parties]
    )

    assert errors == []
    assert sorted(ticket.queue_number for ticket in results) == [1, 2]


def test_reschedule_and_create_cannot_both_take_a_slot(book, customer, make_customer, staff_s1):
    moving = book(RegisteredParty(customer), booking_time=time(10, 0), staff=staff_s1)
    newcomer = RegisteredParty(make_customer())

    results, errors = run_together(
        lambda: engine.reschedule_booking(
            moving.pk, RescheduleChanges(booking_time=time(14, 0)), CustomerActor(customer),
        ),
        lambda: book(newcomer, booking_time=time(14, 0), staff=staff_s1),
    )

    assert len(results) == 1
    assert [type(e) for e in errors] == [SlotUnavailable]
    assert Booking.objects.filter(booking_date=TOMORROW, booking_time=time(14, 0)).count() == 1
