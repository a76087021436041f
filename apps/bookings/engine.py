"""
Reservation service — orchestrates availability, identifiers and the
lifecycle store. Pure business logic, no HTTP/request awareness.

Public API:
  create_booking(request)
  create_guest_booking(request)
  get_booking(booking_id, actor)
  list_bookings(actor, status=None, limit=None)
  reschedule_booking(booking_id, changes, actor)
  cancel_booking(booking_id, reason, actor)
  business_transition(booking_id, event, owner, reason='')
  list_available_slots(business_id, service_id, booking_date, staff_id=None)
  get_queue_status(business_id, booking_date)
  join_waitlist(customer, business_id, service_id, booking_date, booking_time, staff_id=None, notes='')
  leave_waitlist(entry_id, customer)
  list_waitlist(customer)
"""
import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.businesses.models import Business
from apps.services.models import Service
from apps.staff.models import Staff
from apps.notifications.emails import notify

from apps.bookings.availability import find_conflict, get_available_slots
from apps.bookings.exceptions import (
    DuplicateBookingError,
    ExhaustedRetries,
    InvalidTransition,
    NotFoundError,
    PastDateError,
    PermissionDenied,
    SlotUnavailable,
    ValidationError,
)
from apps.bookings.identifiers import (
    generate_booking_number,
    generate_guest_lookup_token,
    issue_queue_number,
)
from apps.bookings.lifecycle import apply_reschedule, lock_booking, lock_business, transition
from apps.bookings.models import (
    Booking,
    BookingStatus,
    BookingType,
    WaitlistEntry,
    WaitlistStatus,
    local_now,
    local_today,
)
from apps.bookings.parties import (
    BookingRequest,
    CustomerActor,
    GuestActor,
    GuestParty,
    RegisteredParty,
    RescheduleChanges,
    normalize_phone,
)

logger = logging.getLogger(__name__)

DEFAULT_AVERAGE_SERVICE_MINUTES = 30

# Ticket shown as "now serving", first match wins
QUEUE_SERVING_ORDER = (BookingStatus.IN_PROGRESS, BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED)


# ── Validation helpers ────────────────────────────────────────────────────────

def _validate_party(party):
    """Returns the party with guest contact details cleaned up."""
    if isinstance(party, RegisteredParty):
        customer = party.customer
        if customer is None or not getattr(customer, 'is_authenticated', False):
            raise ValidationError('A signed-in customer is required.')
        return party

    if isinstance(party, GuestParty):
        name = (party.name or '').strip()
        email = (party.email or '').strip().lower()
        if not name or not email or not party.phone:
            raise ValidationError('Guest bookings need a name, email and phone number.')
        try:
            phone = normalize_phone(party.phone)
        except ValueError:
            raise ValidationError('Invalid phone number.')
        return GuestParty(name=name, email=email, phone=phone)

    raise ValidationError('A booking needs either a customer account or guest contact details.')


def _get_service(business, service_id) -> Service:
    try:
        return Service.objects.active().get(pk=service_id, business=business)
    except (Service.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Service not found for this business.')


def _get_staff(business, staff_id):
    if not staff_id:
        return None
    try:
        return Staff.objects.active().get(pk=staff_id, business=business)
    except (Staff.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Staff member not found for this business.')


def _ensure_not_past(booking_date):
    if booking_date < local_today():
        raise PastDateError('Bookings cannot be made for a date in the past.')


def _party_bookings_on_day(business, booking_date, party):
    qs = Booking.objects.active().on_day(business, booking_date)
    if isinstance(party, RegisteredParty):
        return qs.for_customer(party.customer)
    return qs.for_guest_contact(email=party.email, phone=party.phone)


def _party_of(booking):
    if booking.is_guest_booking:
        return GuestParty(booking.customer_name, booking.customer_email, booking.customer_phone)
    return RegisteredParty(booking.customer)


def _ensure_slot_free(business, staff, booking_date, booking_time, duration, exclude_booking_id=None):
    clash = find_conflict(business, staff, booking_date, booking_time, duration, exclude_booking_id)
    if clash is not None:
        logger.info('Slot %s %s (%d min) rejected: overlaps %s',
                    booking_date, booking_time, duration, clash.booking_number)
        raise SlotUnavailable('The selected time is no longer available. Please choose another slot.')


# ── Core: Booking Creation ────────────────────────────────────────────────────

def create_booking(request: BookingRequest) -> Booking:
    """
    Validate and persist a new CONFIRMED booking for a registered customer
    or a guest, then notify.

    Slot check and insert (or queue issuance and insert) happen in one
    transaction with the business row locked, so concurrent requests for the
    same business are serialised. The unique queue constraint backs this up:
    a collision is retried with a fresh read up to QUEUE_NUMBER_MAX_ATTEMPTS
    times.

    Raises:
      ValidationError, NotFoundError, PastDateError, SlotUnavailable,
      DuplicateBookingError, ExhaustedRetries
    """
    party = _validate_party(request.party)

    if request.type not in BookingType.values:
        raise ValidationError(f"Unknown booking type '{request.type}'.")
    is_time_slot = request.type == BookingType.TIME_SLOT
    if is_time_slot and request.booking_time is None:
        raise ValidationError('Please choose a time for a time slot booking.')

    max_attempts = settings.QUEUE_NUMBER_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        try:
            with transaction.atomic():
                booking = _insert_booking(request, party, is_time_slot)
        except IntegrityError as exc:
            logger.warning('Booking insert collided (attempt %d/%d) for business %s on %s: %s',
                           attempt, max_attempts, request.business_id, request.booking_date, exc)
            if attempt == max_attempts:
                raise ExhaustedRetries('Could not reserve a place right now. Please try again.') from exc
            continue
        break

    logger.info('Booking %s created (%s, %s) for business %s on %s',
                booking.booking_number, booking.type,
                'guest' if booking.is_guest_booking else 'customer',
                booking.business_id, booking.booking_date)
    notify('created', booking)
    return booking


def _insert_booking(request: BookingRequest, party, is_time_slot: bool) -> Booking:
    business = lock_business(request.business_id)
    if not business.is_active:
        raise NotFoundError('Business not found.')
    service = _get_service(business, request.service_id)
    staff = _get_staff(business, request.staff_id)

    _ensure_not_past(request.booking_date)

    queue_number = None
    if is_time_slot:
        _ensure_slot_free(business, staff, request.booking_date,
                          request.booking_time, service.duration_minutes)
    else:
        queue_number = issue_queue_number(business, request.booking_date)

    if _party_bookings_on_day(business, request.booking_date, party).exists():
        raise DuplicateBookingError('You already have a booking at this business on that day.')

    fields = dict(
        booking_number=generate_booking_number(),
        type=request.type,
        business=business,
        service=service,
        staff=staff,
        booking_date=request.booking_date,
        booking_time=request.booking_time if is_time_slot else None,
        queue_number=queue_number,
        estimated_duration=service.duration_minutes,   # snapshot
        price_snapshot=service.price,                 # snapshot
        notes=request.notes or '',
        status=BookingStatus.CONFIRMED,
    )
    if isinstance(party, GuestParty):
        fields.update(
            is_guest_booking=True,
            customer_name=party.name,
            customer_email=party.email,
            customer_phone=party.phone,
            guest_lookup_token=generate_guest_lookup_token(),
        )
    else:
        fields.update(customer=party.customer)

    return Booking.objects.create(**fields)


def create_guest_booking(request: BookingRequest) -> Booking:
    """create_booking restricted to guest parties."""
    if not isinstance(request.party, GuestParty):
        raise ValidationError('Guest bookings need guest contact details.')
    return create_booking(request)


# ── Core: Lookup ──────────────────────────────────────────────────────────────

def _owned(booking, actor):
    # Someone else's booking looks exactly like a missing one
    if actor is None or not actor.owns(booking):
        raise NotFoundError('Booking not found.')
    return booking


def get_booking(booking_id, actor) -> Booking:
    try:
        booking = (
            Booking.objects
            .select_related('business', 'service', 'staff', 'customer')
            .get(pk=booking_id)
        )
    except (Booking.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Booking not found.')
    return _owned(booking, actor)


def list_bookings(actor, status=None, limit=None):
    """Bookings owned by actor, newest first. Optional status filter and limit."""
    if isinstance(actor, CustomerActor):
        qs = Booking.objects.for_customer(actor.user)
    elif isinstance(actor, GuestActor):
        qs = Booking.objects.filter(is_guest_booking=True, guest_lookup_token=actor.token)
    else:
        raise ValidationError('Unknown caller.')

    if status:
        if status not in BookingStatus.values:
            raise ValidationError(f"Unknown booking status '{status}'.")
        qs = qs.filter(status=status)

    qs = qs.select_related('business', 'service', 'staff').order_by(
        '-booking_date', '-booking_time', '-queue_number',
    )
    if limit:
        qs = qs[:limit]
    return qs


# ── Core: Reschedule ──────────────────────────────────────────────────────────

def reschedule_booking(booking_id, changes: RescheduleChanges, actor) -> Booking:
    """
    Move a CONFIRMED booking to a new date, time and/or staff member.

    Queue tickets moved to another day join the end of that day's queue;
    they cannot be given a time. When date, time and staff all stay the same
    only the notes are saved: nothing is logged and no email goes out.

    Raises:
      NotFoundError, ValidationError, InvalidTransition, PastDateError,
      SlotUnavailable, DuplicateBookingError
    """
    if changes.is_empty():
        raise ValidationError('Nothing to change.')

    business_id = _booking_field(booking_id, 'business_id')
    if business_id is None:
        raise NotFoundError('Booking not found.')

    with transaction.atomic():
        business = lock_business(business_id)
        booking = _owned(lock_booking(booking_id), actor)

        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition(
                f"Only confirmed bookings can be rescheduled (booking {booking.booking_number} is {booking.status})."
            )

        new_date = changes.booking_date or booking.booking_date
        _ensure_not_past(new_date)

        if changes.clear_staff:
            new_staff = None
        elif changes.staff_id:
            new_staff = _get_staff(business, changes.staff_id)
        else:
            new_staff = booking.staff

        if booking.type == BookingType.TIME_SLOT:
            new_time = changes.booking_time or booking.booking_time
        else:
            if changes.booking_time is not None:
                raise ValidationError('Queue bookings do not have a time.')
            new_time = None

        if changes.notes is not None:
            booking.notes = changes.notes

        moved = (new_date, new_time, new_staff.pk if new_staff else None) != (
            booking.booking_date, booking.booking_time, booking.staff_id,
        )
        if not moved:
            # Same slot: notes only, no audit row and no email
            booking.save(update_fields=['notes', 'updated_at'])
            return booking

        new_queue_number = None
        if booking.type == BookingType.TIME_SLOT:
            _ensure_slot_free(business, new_staff, new_date, new_time,
                              booking.estimated_duration, exclude_booking_id=booking.pk)
        else:
            new_queue_number = booking.queue_number
            if new_date != booking.booking_date:
                new_queue_number = issue_queue_number(business, new_date)

        if new_date != booking.booking_date:
            others = _party_bookings_on_day(business, new_date, _party_of(booking)).exclude(pk=booking.pk)
            if others.exists():
                raise DuplicateBookingError('You already have a booking at this business on that day.')

        apply_reschedule(booking, new_date, new_time, new_staff, new_queue_number,
                         changed_by=actor.label)

    notify('rescheduled', booking)
    return booking


def _booking_field(booking_id, field):
    """Unlocked read of a column that never changes after creation."""
    try:
        return Booking.objects.filter(pk=booking_id).values_list(field, flat=True).first()
    except (ValueError, DjangoValidationError):
        return None


# ── Core: Cancellation ────────────────────────────────────────────────────────

def cancel_booking(booking_id, reason: str, actor) -> Booking:
    """
    Cancel a booking on behalf of its owner. Guests may only cancel while
    the booking is still CONFIRMED; customers also while CHECKED_IN.

    Raises:
      NotFoundError, ValidationError, AlreadyCancelled, InvalidTransition
    """
    with transaction.atomic():
        booking = _owned(lock_booking(booking_id), actor)
        if isinstance(actor, GuestActor) and booking.status == BookingStatus.CHECKED_IN:
            raise InvalidTransition('Checked-in bookings can only be cancelled by the business.')
        booking.cancel(reason, changed_by=actor.label)

    logger.info('Booking %s cancelled by %s', booking.booking_number, actor.label)
    notify('cancelled', booking)
    return booking


# ── Business side ─────────────────────────────────────────────────────────────

def business_transition(booking_id, event: str, owner, reason: str = '') -> Booking:
    """Lifecycle event driven by the owner of the booking's business."""
    owner_id = _booking_field(booking_id, 'business__owner_id')
    if owner_id is None:
        raise NotFoundError('Booking not found.')
    if owner is None or owner_id != owner.pk:
        raise PermissionDenied('This booking belongs to another business.')

    booking = transition(booking_id, event, changed_by='business', reason=reason)
    if event == 'cancel':
        notify('cancelled', booking)
    return booking


# ── Slot listing ──────────────────────────────────────────────────────────────

def _get_business(business_id) -> Business:
    try:
        return Business.objects.active().get(pk=business_id)
    except (Business.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError('Business not found.')


def list_available_slots(business_id, service_id, booking_date, staff_id=None) -> dict:
    business = _get_business(business_id)
    service = _get_service(business, service_id)
    staff = _get_staff(business, staff_id)
    result = get_available_slots(business, service, booking_date, staff)
    result.update(
        business_id=str(business.id),
        service_id=str(service.id),
        date=booking_date.isoformat(),
        duration=service.duration_minutes,
    )
    return result


# ── Queue board ───────────────────────────────────────────────────────────────

def get_queue_status(business_id, booking_date) -> dict:
    """
    Snapshot of one business day's queue: who is being served, how many are
    waiting and a wait estimate from today's completed services.
    """
    business = _get_business(business_id)

    bookings = list(
        Booking.objects.active()
        .on_day(business, booking_date)
        .select_related('service', 'customer')
        .order_by('queue_number', 'booking_time')
    )

    tickets = [b for b in bookings if b.queue_number]
    current = None
    for status in QUEUE_SERVING_ORDER:
        current = next((b.queue_number for b in tickets if b.status == status), None)
        if current is not None:
            break

    completed = [
        b for b in bookings
        if b.status == BookingStatus.COMPLETED and b.actual_start_time and b.actual_end_time
    ]
    if completed:
        total = sum((b.actual_end_time - b.actual_start_time).total_seconds() / 60 for b in completed)
        average = total / len(completed)
    else:
        average = DEFAULT_AVERAGE_SERVICE_MINUTES

    waiting = [
        b for b in tickets
        if b.status in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
        and b.queue_number > (current or 0)
    ]

    return {
        'business_id': str(business.id),
        'business_name': business.name,
        'date': booking_date.isoformat(),
        'current_serving': current,
        'total_queue': len(tickets),
        'average_wait_time': round(average),
        'estimated_wait_time': round(len(waiting) * average),
        'queue': [
            {
                'booking_number': b.booking_number,
                'queue_number': b.queue_number,
                'customer_name': b.party_name,
                'service_name': b.service.name,
                'estimated_duration': b.estimated_duration,
                'status': b.status,
                'booking_time': b.booking_time.strftime('%H:%M') if b.booking_time else None,
            }
            for b in bookings
        ],
        'last_updated': local_now().isoformat(),
    }


# ── Waitlist ──────────────────────────────────────────────────────────────────

def join_waitlist(customer, business_id, service_id, booking_date, booking_time,
                  staff_id=None, notes='') -> WaitlistEntry:
    """
    Put a signed-in customer in line for a time slot. The new entry goes to
    the back: position is one more than the WAITING entries for that slot.

    Raises:
      ValidationError, NotFoundError, PastDateError, DuplicateBookingError
    """
    _validate_party(RegisteredParty(customer))
    _ensure_not_past(booking_date)

    with transaction.atomic():
        business = lock_business(business_id)
        if not business.is_active:
            raise NotFoundError('Business not found.')
        service = _get_service(business, service_id)
        staff = _get_staff(business, staff_id)

        in_line = WaitlistEntry.objects.waiting().for_slot(business, booking_date, booking_time)
        if in_line.filter(customer=customer).exists():
            raise DuplicateBookingError('You are already on the waitlist for this time.')

        booked = (
            Booking.objects.active()
            .on_day(business, booking_date)
            .for_customer(customer)
            .filter(booking_time=booking_time)
        )
        if booked.exists():
            raise DuplicateBookingError('You already have a booking at this time.')

        entry = WaitlistEntry.objects.create(
            customer=customer,
            business=business,
            service=service,
            staff=staff,
            booking_date=booking_date,
            booking_time=booking_time,
            position=in_line.count() + 1,
            notes=notes or '',
        )

    logger.info('Customer %s joined the waitlist for business %s on %s %s at position %d',
                customer.pk, business.pk, booking_date, booking_time, entry.position)
    return entry


def leave_waitlist(entry_id, customer) -> WaitlistEntry:
    """
    Take a WAITING entry off the waitlist; everyone behind it moves up one.

    Raises:
      NotFoundError — no WAITING entry with that id belongs to the customer
    """
    try:
        business_id = (
            WaitlistEntry.objects.filter(pk=entry_id).values_list('business_id', flat=True).first()
        )
    except (ValueError, DjangoValidationError):
        business_id = None
    if business_id is None:
        raise NotFoundError('Waitlist entry not found.')

    with transaction.atomic():
        lock_business(business_id)
        try:
            entry = (
                WaitlistEntry.objects.waiting()
                .select_for_update()
                .get(pk=entry_id, customer=customer)
            )
        except WaitlistEntry.DoesNotExist:
            raise NotFoundError('Waitlist entry not found.')

        entry.status = WaitlistStatus.LEFT
        entry.left_at = timezone.now()
        entry.save(update_fields=['status', 'left_at', 'updated_at'])

        (
            WaitlistEntry.objects.waiting()
            .for_slot(entry.business_id, entry.booking_date, entry.booking_time)
            .filter(position__gt=entry.position)
            .update(position=F('position') - 1)
        )

    logger.info('Waitlist entry %s left (was position %d)', entry.pk, entry.position)
    return entry


def list_waitlist(customer):
    """The customer's WAITING entries, soonest slot first."""
    return (
        WaitlistEntry.objects.waiting()
        .filter(customer=customer)
        .select_related('business', 'service', 'staff')
        .order_by('booking_date', 'booking_time', 'position')
    )
