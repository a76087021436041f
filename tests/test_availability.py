from datetime import time, timedelta

import pytest

from apps.bookings.availability import find_conflict, get_available_slots, is_available
from apps.bookings.exceptions import SlotUnavailable
from apps.bookings.parties import RegisteredParty
from apps.businesses.models import OperatingHours
from tests.clock import TODAY, TOMORROW, YESTERDAY, at

pytestmark = pytest.mark.django_db


@pytest.fixture
def party(make_customer):
    return lambda: RegisteredParty(make_customer())


# ── Interval overlap ─────────────────────────────────────────────────────────

def test_overlapping_start_for_same_staff_is_rejected(book, party, staff_s1):
    book(party(), booking_time=time(14, 0), staff=staff_s1)

    with pytest.raises(SlotUnavailable):
        book(party(), booking_time=time(14, 30), staff=staff_s1)


def test_back_to_back_slot_for_same_staff_is_accepted(book, party, staff_s1):
    book(party(), booking_time=time(14, 0), staff=staff_s1)

    second = book(party(), booking_time=time(15, 0), staff=staff_s1)
    assert second.booking_time == time(15, 0)


def test_other_staff_member_is_free(book, party, staff_s1, staff_s2):
    book(party(), booking_time=time(14, 0), staff=staff_s1)

    other = book(party(), booking_time=time(14, 30), staff=staff_s2)
    assert other.staff == staff_s2


def test_candidate_ending_inside_existing_booking_conflicts(book, party, business, staff_s1):
    existing = book(party(), booking_time=time(14, 0), staff=staff_s1)

    assert find_conflict(business, staff_s1, TOMORROW, time(13, 30), 60) == existing
    assert is_available(business, staff_s1, TOMORROW, time(13, 0), 60)


def test_unassigned_request_checks_the_whole_business(book, party, staff_s1):
    book(party(), booking_time=time(14, 0), staff=staff_s1)

    with pytest.raises(SlotUnavailable):
        book(party(), booking_time=time(14, 30))


def test_cancelled_booking_frees_its_slot(book, party, business, staff_s1):
    existing = book(party(), booking_time=time(14, 0), staff=staff_s1)
    existing.cancel('no longer needed')

    assert is_available(business, staff_s1, TOMORROW, time(14, 0), 60)


def test_booking_can_be_excluded_from_its_own_check(book, party, business, staff_s1):
    existing = book(party(), booking_time=time(14, 0), staff=staff_s1)

    assert not is_available(business, staff_s1, TOMORROW, time(14, 30), 60)
    assert is_available(business, staff_s1, TOMORROW, time(14, 30), 60,
                        exclude_booking_id=existing.pk)


def test_queue_tickets_do_not_block_time_slots(book, party, business):
    book(party(), type='QUEUE_NUMBER')

    assert is_available(business, None, TOMORROW, time(9, 0), 60)


# ── Slot listing ─────────────────────────────────────────────────────────────

def test_slot_grid_covers_opening_hours(business, service):
    result = get_available_slots(business, service, TOMORROW)

    times = [s['time'] for s in result['slots']]
    assert times[0] == '09:00'
    assert times[-1] == '17:00'
    assert len(times) == 17
    assert all(s['available'] for s in result['slots'])
    assert result['operating_hours'] == {'open_time': '09:00', 'close_time': '18:00'}
    assert result['next_queue_number'] == 1


def test_slot_grid_marks_taken_times(book, party, business, service, staff_s1):
    book(party(), booking_time=time(10, 0), staff=staff_s1)

    slots = {s['time']: s['available']
             for s in get_available_slots(business, service, TOMORROW, staff_s1)['slots']}
    assert slots['09:00'] is True
    assert slots['09:30'] is False
    assert slots['10:00'] is False
    assert slots['10:30'] is False
    assert slots['11:00'] is True


def test_started_times_are_unavailable_today(business, service, freeze):
    freeze(at(10, 15))

    slots = {s['time']: s['available'] for s in get_available_slots(business, service, TODAY)['slots']}
    assert slots['10:00'] is False
    assert slots['10:30'] is True


def test_closed_day_has_no_slots(business, service):
    OperatingHours.objects.filter(business=business, weekday=TOMORROW.weekday()).update(is_open=False)

    result = get_available_slots(business, service, TOMORROW)
    assert result['slots'] == []
    assert result['operating_hours'] is None


def test_past_day_has_no_slots(business, service):
    assert get_available_slots(business, service, YESTERDAY)['slots'] == []


def test_next_queue_number_is_reported(book, party, business, service):
    book(party(), type='QUEUE_NUMBER')
    book(party(), type='QUEUE_NUMBER', booking_date=TOMORROW + timedelta(days=1))

    assert get_available_slots(business, service, TOMORROW)['next_queue_number'] == 2
