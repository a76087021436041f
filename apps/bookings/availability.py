"""
Availability checker — pure scheduling logic, no HTTP/request awareness.

Public API:
  is_available(business, staff, booking_date, start_time, duration_minutes, exclude_booking_id=None)
  find_conflict(...)           same arguments, returns the clashing Booking or None
  get_available_slots(business, service, booking_date, staff=None)
"""
from datetime import datetime, timedelta, date as date_type, time as time_type

from django.conf import settings
from django.db.models import Count

from apps.bookings.identifiers import next_queue_number
from apps.bookings.models import Booking, WaitlistEntry, local_now


# ── Time helpers ──────────────────────────────────────────────────────────────

def _time_to_minutes(t: time_type) -> int:
    return t.hour * 60 + t.minute


def _minutes_to_time(minutes: int) -> time_type:
    return (datetime.min + timedelta(minutes=minutes)).time()


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True if [a_start, a_end) overlaps [b_start, b_end). Arguments in minutes since midnight."""
    return a_start < b_end and b_start < a_end


# ── Core: Conflict Check ──────────────────────────────────────────────────────

def _occupying_bookings(business, staff, booking_date: date_type, exclude_booking_id=None):
    """
    Active time-slot bookings that compete with a new one. With a staff member,
    only that member's bookings; without, every booking of the business.
    Queue tickets never hold an interval.
    """
    qs = Booking.objects.active().time_slots().on_day(business, booking_date)
    if staff is not None:
        qs = qs.filter(staff=staff)
    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    return qs.only('id', 'booking_number', 'booking_time', 'estimated_duration')


def find_conflict(business, staff, booking_date: date_type, start_time: time_type,
                  duration_minutes: int, exclude_booking_id=None):
    """Returns the first active booking overlapping [start_time, start_time+duration), or None."""
    start = _time_to_minutes(start_time)
    end = start + duration_minutes
    for existing in _occupying_bookings(business, staff, booking_date, exclude_booking_id):
        existing_start = _time_to_minutes(existing.booking_time)
        existing_end = existing_start + existing.estimated_duration
        if _overlaps(existing_start, existing_end, start, end):
            return existing
    return None


def is_available(business, staff, booking_date: date_type, start_time: time_type,
                 duration_minutes: int, exclude_booking_id=None) -> bool:
    return find_conflict(
        business, staff, booking_date, start_time, duration_minutes, exclude_booking_id,
    ) is None


# ── Core: Slot Listing ────────────────────────────────────────────────────────

def get_available_slots(business, service, booking_date: date_type, staff=None) -> dict:
    """
    Walk the business's opening hours for booking_date in SLOT_INTERVAL_MINUTES
    steps and report every start time that fits the service.

    Returns:
      {
        "slots": [{"time": "09:00", "available": True, "waitlist_count": 0}, ...],
        "next_queue_number": 4,
        "operating_hours": {"open_time": "09:00", "close_time": "18:00"} | None,
      }

    Closed days and past dates produce an empty slot list.
    """
    result = {
        'slots': [],
        'next_queue_number': next_queue_number(business, booking_date),
        'operating_hours': None,
    }

    hours = business.get_operating_hours(booking_date)
    if hours is None:
        return result
    result['operating_hours'] = {
        'open_time': hours.open_time.strftime('%H:%M'),
        'close_time': hours.close_time.strftime('%H:%M'),
    }

    now = local_now()
    if booking_date < now.date():
        return result

    duration = service.duration_minutes
    interval = settings.SLOT_INTERVAL_MINUTES
    close = _time_to_minutes(hours.close_time)
    occupied = [
        (_time_to_minutes(b.booking_time), _time_to_minutes(b.booking_time) + b.estimated_duration)
        for b in _occupying_bookings(business, staff, booking_date)
    ]
    already_started = _time_to_minutes(now.time()) if booking_date == now.date() else -1
    waiting = _waitlist_counts(business, booking_date)

    current = _time_to_minutes(hours.open_time)
    while current + duration <= close:
        free = current > already_started and not any(
            _overlaps(occ_s, occ_e, current, current + duration) for occ_s, occ_e in occupied
        )
        result['slots'].append({
            'time': _minutes_to_time(current).strftime('%H:%M'),
            'available': free,
            'waitlist_count': waiting.get(_minutes_to_time(current), 0),
        })
        current += interval

    return result


def _waitlist_counts(business, booking_date) -> dict:
    """{time: number of WAITING entries} for one business day."""
    rows = (
        WaitlistEntry.objects.waiting()
        .filter(business=business, booking_date=booking_date)
        .values('booking_time')
        .annotate(n=Count('id'))
        .order_by()
    )
    return {row['booking_time']: row['n'] for row in rows}
