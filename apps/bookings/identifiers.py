"""
Identifier generation for bookings.

Public API:
  generate_booking_number()
  next_queue_number(business, booking_date)
  issue_queue_number(business, booking_date)
  generate_guest_lookup_token()
  format_booking_number(booking_number)
"""
import logging
import secrets

from django.conf import settings
from django.db.models import Max

from apps.bookings.exceptions import ExhaustedRetries
from apps.bookings.models import Booking, QueueCounter, local_today

logger = logging.getLogger(__name__)

GUEST_TOKEN_BYTES = 16


def generate_booking_number() -> str:
    """
    Short human-facing code: prefix + YYYYMMDD (issue date) + 4 random digits,
    e.g. JQ202510191234. Checked against existing bookings; the unique column
    remains the final guard.

    Raises ExhaustedRetries after BOOKING_NUMBER_MAX_ATTEMPTS collisions.
    """
    prefix = settings.BOOKING_NUMBER_PREFIX
    date_part = local_today().strftime('%Y%m%d')
    max_attempts = settings.BOOKING_NUMBER_MAX_ATTEMPTS

    for _ in range(max_attempts):
        candidate = f"{prefix}{date_part}{1000 + secrets.randbelow(9000)}"
        if not Booking.objects.filter(booking_number=candidate).exists():
            return candidate

    logger.error('No free booking number for %s after %d attempts', date_part, max_attempts)
    raise ExhaustedRetries('Could not allocate a booking number. Please try again.')


def _highest_issued(business, booking_date) -> int:
    booked = (
        Booking.objects
        .filter(business=business, booking_date=booking_date, queue_number__isnull=False)
        .aggregate(top=Max('queue_number'))['top']
    ) or 0
    counter = (
        QueueCounter.objects
        .filter(business=business, booking_date=booking_date)
        .values_list('last_number', flat=True)
        .first()
    ) or 0
    return max(booked, counter)


def next_queue_number(business, booking_date) -> int:
    """Number the next ticket for business+date would get. Read only."""
    return _highest_issued(business, booking_date) + 1


def issue_queue_number(business, booking_date) -> int:
    """
    Hand out the next queue number for business+date and advance the day's
    counter. Numbers of cancelled tickets and of tickets moved to another day
    stay used. Must be called inside the issuing transaction, with the
    business row locked.
    """
    counter, _ = (
        QueueCounter.objects
        .select_for_update()
        .get_or_create(business=business, booking_date=booking_date)
    )
    number = _highest_issued(business, booking_date) + 1
    counter.last_number = number
    counter.save(update_fields=['last_number'])
    return number


def generate_guest_lookup_token() -> str:
    """128 random bits as 32 upper-case hex chars. A bearer credential, not a display id."""
    return secrets.token_hex(GUEST_TOKEN_BYTES).upper()


def format_booking_number(booking_number: str) -> str:
    """JQ202510191234 -> JQ-2025-10-19-1234. Anything else is returned unchanged."""
    prefix = settings.BOOKING_NUMBER_PREFIX
    if len(booking_number) != len(prefix) + 12 or not booking_number.startswith(prefix):
        return booking_number
    body = booking_number[len(prefix):]
    return f"{prefix}-{body[0:4]}-{body[4:6]}-{body[6:8]}-{body[8:]}"
