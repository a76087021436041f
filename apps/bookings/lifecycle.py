"""
Booking lifecycle store — row locking around the state machine in models.py.

Every mutation of an existing booking runs inside transaction.atomic() with
the booking row held by SELECT ... FOR UPDATE, and the guard is evaluated
against that freshly read row. Two requests racing on the same booking
therefore see each other's result instead of a stale copy.

Lock order is always business row first, then booking row.

Public API:
  lock_business(business_id)
  lock_booking(booking_id, **filters)
  transition(booking_id, event, changed_by, reason='')
  apply_reschedule(booking, booking_date, booking_time, staff, queue_number, changed_by)
  mark_elapsed_no_shows(changed_by='system_cron')
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.businesses.models import Business
from apps.bookings.exceptions import InvalidTransition, NotFoundError
from apps.bookings.models import Booking, BookingStatus, BookingStatusLog, TRANSITIONS, local_today

logger = logging.getLogger(__name__)


def lock_business(business_id) -> Business:
    """Serialises slot checks and queue issuance for one business."""
    try:
        return Business.objects.select_for_update().get(pk=business_id)
    except (Business.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Business not found.')


def lock_booking(booking_id, **filters) -> Booking:
    try:
        return (
            Booking.objects
            .select_for_update()
            .select_related('business', 'service', 'staff')
            .get(pk=booking_id, **filters)
        )
    except (Booking.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Booking not found.')


@transaction.atomic
def transition(booking_id, event: str, changed_by: str, reason: str = '') -> Booking:
    """
    Apply one lifecycle event (check_in, start_service, finish_service,
    cancel, mark_no_show) to the booking.

    Raises:
      NotFoundError     — booking does not exist
      InvalidTransition — event not allowed from the current status or guard failed
      AlreadyCancelled  — cancelling a cancelled booking
      ValidationError   — cancel without a reason
    """
    if event not in TRANSITIONS:
        raise InvalidTransition(f"Unknown booking event '{event}'.")

    booking = lock_booking(booking_id)
    old_status = booking.status
    if event == 'cancel':
        booking.cancel(reason, changed_by=changed_by)
    else:
        getattr(booking, event)(changed_by=changed_by)

    logger.info('Booking %s: %s -> %s (%s by %s)',
                booking.booking_number, old_status, booking.status, event, changed_by)
    return booking


def apply_reschedule(booking: Booking, booking_date, booking_time, staff, queue_number,
                     changed_by: str) -> Booking:
    """
    Persist new date/time/staff on a locked CONFIRMED booking. Availability and
    date checks are the caller's job; the status stays CONFIRMED and the move
    is recorded in the status log.
    """
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidTransition(
            f"Only confirmed bookings can be rescheduled (booking {booking.booking_number} is {booking.status})."
        )

    before = _describe_slot(booking)
    booking.booking_date = booking_date
    booking.booking_time = booking_time
    booking.staff = staff
    booking.queue_number = queue_number
    booking.save(update_fields=[
        'booking_date', 'booking_time', 'staff', 'queue_number', 'notes', 'updated_at',
    ])

    BookingStatusLog.objects.create(
        booking=booking,
        from_status=booking.status,
        to_status=booking.status,
        changed_by=changed_by,
        reason=f"Rescheduled from {before} to {_describe_slot(booking)}",
    )
    logger.info('Booking %s rescheduled from %s to %s by %s',
                booking.booking_number, before, _describe_slot(booking), changed_by)
    return booking


def _describe_slot(booking: Booking) -> str:
    if booking.booking_time is not None:
        when = booking.booking_time.strftime('%H:%M')
    else:
        when = f"queue #{booking.queue_number}"
    staff = booking.staff.name if booking.staff_id else 'any staff'
    return f"{booking.booking_date.isoformat()} {when} ({staff})"


def mark_elapsed_no_shows(changed_by: str = 'system_cron') -> int:
    """
    Move every CONFIRMED booking whose time has passed to NO_SHOW.
    Intended for an external scheduler; each booking is its own transaction.
    """
    count = 0
    candidates = list(
        Booking.objects
        .filter(status=BookingStatus.CONFIRMED, booking_date__lte=local_today())
        .values_list('pk', flat=True)
    )
    for pk in candidates:
        try:
            transition(pk, 'mark_no_show', changed_by)
        except InvalidTransition:
            # Not yet elapsed, or moved on since the candidate list was read
            continue
        count += 1
    return count
