"""
Bookings app models:
  - Booking          : Core booking record (time slot or queue ticket) with state machine
  - BookingStatusLog : Full audit trail of state transitions
  - QueueCounter     : Highest queue number issued per business day
  - WaitlistEntry    : Customer waiting for a taken time slot

Status transitions go through the explicit methods on Booking, which all
funnel into Booking._transition() and the TRANSITIONS table below.
The status field is never written directly.
"""
from datetime import datetime, timedelta

from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone

from apps.core.models import UUIDModel, TimestampedModel
from apps.businesses.models import Business
from apps.services.models import Service
from apps.staff.models import Staff
from apps.bookings.exceptions import (
    AlreadyCancelled,
    InvalidTransition,
    ValidationError,
)


# ── Booking State Machine ─────────────────────────────────────────────────────

class BookingType(models.TextChoices):
    TIME_SLOT    = 'TIME_SLOT',    'Time Slot'
    QUEUE_NUMBER = 'QUEUE_NUMBER', 'Queue Number'


class BookingStatus(models.TextChoices):
    CONFIRMED   = 'CONFIRMED',   'Confirmed'
    CHECKED_IN  = 'CHECKED_IN',  'Checked In'
    IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
    COMPLETED   = 'COMPLETED',   'Completed'
    CANCELLED   = 'CANCELLED',   'Cancelled'
    NO_SHOW     = 'NO_SHOW',     'No Show'


TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
})

# event -> (allowed source statuses, target status)
TRANSITIONS = {
    'check_in':       ({BookingStatus.CONFIRMED}, BookingStatus.CHECKED_IN),
    'start_service':  ({BookingStatus.CHECKED_IN}, BookingStatus.IN_PROGRESS),
    'finish_service': ({BookingStatus.IN_PROGRESS}, BookingStatus.COMPLETED),
    'cancel':         ({BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN}, BookingStatus.CANCELLED),
    'mark_no_show':   ({BookingStatus.CONFIRMED}, BookingStatus.NO_SHOW),
}


def local_now():
    return timezone.localtime(timezone.now())


def local_today():
    return local_now().date()


class BookingQuerySet(models.QuerySet):
    def active(self):
        """Bookings still holding their slot or ticket (anything but CANCELLED)."""
        return self.exclude(status=BookingStatus.CANCELLED)

    def time_slots(self):
        return self.filter(type=BookingType.TIME_SLOT)

    def on_day(self, business, booking_date):
        return self.filter(business=business, booking_date=booking_date)

    def for_customer(self, customer):
        return self.filter(customer=customer, is_guest_booking=False)

    def for_guest_contact(self, email='', phone=''):
        contact = models.Q()
        if email:
            contact |= models.Q(customer_email__iexact=email)
        if phone:
            contact |= models.Q(customer_phone=phone)
        if not contact:
            return self.none()
        return self.filter(contact, is_guest_booking=True)


class Booking(UUIDModel, TimestampedModel):
    """
    A reservation for one service at one business, either pinned to a start
    time (TIME_SLOT) or holding a numbered place in the day's queue
    (QUEUE_NUMBER). Never physically deleted; cancellation is a status.
    """
    booking_number = models.CharField(max_length=20, unique=True, editable=False)
    type = models.CharField(
        max_length=20, choices=BookingType.choices,
        default=BookingType.TIME_SLOT, editable=False,
    )

    business = models.ForeignKey(Business, on_delete=models.PROTECT, related_name='bookings')
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name='bookings')
    staff = models.ForeignKey(
        Staff, on_delete=models.PROTECT, null=True, blank=True, related_name='bookings',
    )

    booking_date = models.DateField(db_index=True)
    booking_time = models.TimeField(null=True, blank=True)
    queue_number = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)],
    )
    estimated_duration = models.PositiveIntegerField(
        help_text='service.duration_minutes at time of booking',
    )
    price_snapshot = models.DecimalField(
        max_digits=10, decimal_places=2, default=0,
        help_text='service.price at time of booking',
    )

    # Registered party
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT,
        null=True, blank=True, related_name='bookings',
    )
    # Guest party (no account; the lookup token is a bearer credential)
    is_guest_booking = models.BooleanField(default=False)
    customer_name = models.CharField(max_length=100, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=20, blank=True, db_index=True)
    guest_lookup_token = models.CharField(
        max_length=64, unique=True, null=True, blank=True, editable=False,
    )

    status = models.CharField(
        max_length=20, choices=BookingStatus.choices,
        default=BookingStatus.CONFIRMED, db_index=True,
    )
    cancellation_reason = models.TextField(null=True, blank=True)
    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        verbose_name = 'Booking'
        verbose_name_plural = 'Bookings'
        ordering = ['-booking_date', '-booking_time', '-queue_number']
        constraints = [
            # Queue tickets are never issued twice for the same business day
            models.UniqueConstraint(
                fields=['business', 'booking_date', 'queue_number'],
                condition=models.Q(queue_number__isnull=False),
                name='uq_business_day_queue_number',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(type=BookingType.TIME_SLOT,
                             booking_time__isnull=False, queue_number__isnull=True)
                    | models.Q(type=BookingType.QUEUE_NUMBER,
                               booking_time__isnull=True, queue_number__isnull=False)
                ),
                name='ck_booking_type_fields',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(is_guest_booking=False, customer__isnull=False)
                    | models.Q(is_guest_booking=True, customer__isnull=True,
                               guest_lookup_token__isnull=False)
                ),
                name='ck_booking_single_party',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status=BookingStatus.CANCELLED, cancellation_reason__isnull=False)
                    | (~models.Q(status=BookingStatus.CANCELLED)
                       & models.Q(cancellation_reason__isnull=True))
                ),
                name='ck_cancellation_reason_iff_cancelled',
            ),
        ]
        indexes = [
            models.Index(fields=['business', 'booking_date', 'status'], name='ix_booking_business_day'),
        ]

    def __str__(self):
        when = self.booking_time.strftime('%H:%M') if self.booking_time else f"Q{self.queue_number}"
        return f"{self.booking_number} | {self.party_name} | {self.booking_date} {when}"

    # ── Read-time helpers ─────────────────────────────────────────────────────

    @property
    def party_name(self):
        if self.is_guest_booking:
            return self.customer_name
        return self.customer.get_full_name() or self.customer.get_username()

    @property
    def party_email(self):
        return self.customer_email if self.is_guest_booking else self.customer.email

    @property
    def end_time(self):
        if self.booking_time is None:
            return None
        start = datetime.combine(self.booking_date, self.booking_time)
        return (start + timedelta(minutes=self.estimated_duration)).time()

    @property
    def starts_at(self):
        """Aware datetime of the slot start, or None for queue tickets."""
        if self.booking_time is None:
            return None
        return timezone.make_aware(
            datetime.combine(self.booking_date, self.booking_time),
            timezone.get_current_timezone(),
        )

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def is_today(self):
        return self.booking_date == local_today()

    @property
    def is_past(self):
        """
        A booking is past once its day is over, or for a time slot once its
        start time has been reached. Queue tickets stay current all day.
        """
        now = local_now()
        if self.booking_date != now.date():
            return self.booking_date < now.date()
        return self.starts_at is not None and self.starts_at <= now

    @property
    def can_cancel(self):
        return not self.is_past and self.status in TRANSITIONS['cancel'][0]

    @property
    def can_modify(self):
        return not self.is_past and self.status == BookingStatus.CONFIRMED

    @property
    def time_until_booking(self):
        """Whole minutes until today's slot starts; None otherwise."""
        if not self.is_today or self.starts_at is None:
            return None
        delta = self.starts_at - local_now()
        if delta.total_seconds() <= 0:
            return None
        return int(delta.total_seconds() // 60)

    # ── State transition helpers ──────────────────────────────────────────────

    def check_in(self, changed_by='business'):
        """Customer arrived. Only on the booking day."""
        if self.booking_date != local_today():
            self._reject('check_in', 'Bookings can only be checked in on the booking date.')
        self._transition('check_in', changed_by)
        self.save(update_fields=['status', 'updated_at'])

    def start_service(self, changed_by='business'):
        self._transition('start_service', changed_by)
        self.actual_start_time = timezone.now()
        self.save(update_fields=['status', 'actual_start_time', 'updated_at'])

    def finish_service(self, changed_by='business'):
        self._transition('finish_service', changed_by)
        self.actual_end_time = timezone.now()
        self.save(update_fields=['status', 'actual_end_time', 'updated_at'])

    def cancel(self, reason, changed_by='customer'):
        if self.status == BookingStatus.CANCELLED:
            raise AlreadyCancelled(f"Booking {self.booking_number} is already cancelled.")
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError('A cancellation reason is required.')
        if self.status in TRANSITIONS['cancel'][0] and self.is_past:
            self._reject('cancel', 'Bookings in the past cannot be cancelled.')
        self._transition('cancel', changed_by, reason)
        self.cancellation_reason = reason
        self.save(update_fields=['status', 'cancellation_reason', 'updated_at'])

    def mark_no_show(self, changed_by='system'):
        """Customer never arrived. Only once the booking's time has elapsed."""
        if self.status in TRANSITIONS['mark_no_show'][0] and not self.is_past:
            self._reject('mark_no_show', 'A booking can only be marked no-show after its time has passed.')
        self._transition('mark_no_show', changed_by)
        self.save(update_fields=['status', 'updated_at'])

    def _reject(self, event, message):
        raise InvalidTransition(f"Cannot {event.replace('_', ' ')} booking {self.booking_number}: {message}")

    def _transition(self, event, changed_by, reason=''):
        sources, new_status = TRANSITIONS[event]
        if self.status not in sources:
            self._reject(event, f"not allowed from {self.status}.")
        old_status = self.status
        self.status = new_status
        BookingStatusLog.objects.create(
            booking=self,
            from_status=old_status,
            to_status=new_status,
            changed_by=changed_by,
            reason=reason,
        )


# ── Booking Audit Log ─────────────────────────────────────────────────────────

class BookingStatusLog(UUIDModel):
    """Immutable audit trail of every status transition on a booking."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='status_logs')
    from_status = models.CharField(max_length=20, choices=BookingStatus.choices, blank=True)
    to_status = models.CharField(max_length=20, choices=BookingStatus.choices)
    changed_by = models.CharField(max_length=80, help_text='customer / guest / business / system')
    reason = models.TextField(blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Booking Status Log'
        verbose_name_plural = 'Booking Status Logs'
        ordering = ['changed_at']

    def __str__(self):
        return f"Booking {self.booking.booking_number}: {self.from_status or '—'} → {self.to_status}"


# ── Queue Numbering ───────────────────────────────────────────────────────────

class QueueCounter(models.Model):
    """
    High-water mark of queue numbers handed out for one business day.
    Only ever grows, so a ticket that is cancelled or moved to another day
    never frees its number for reuse.
    """
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='queue_counters')
    booking_date = models.DateField()
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = 'Queue Counter'
        verbose_name_plural = 'Queue Counters'
        constraints = [
            models.UniqueConstraint(fields=['business', 'booking_date'], name='uq_queue_counter_business_day'),
        ]

    def __str__(self):
        return f"{self.business.name} {self.booking_date}: #{self.last_number}"


# ── Waitlist ──────────────────────────────────────────────────────────────────

class WaitlistStatus(models.TextChoices):
    WAITING = 'WAITING', 'Waiting'
    LEFT    = 'LEFT',    'Left'


class WaitlistQuerySet(models.QuerySet):
    def waiting(self):
        return self.filter(status=WaitlistStatus.WAITING)

    def for_slot(self, business, booking_date, booking_time):
        return self.filter(business=business, booking_date=booking_date, booking_time=booking_time)


class WaitlistEntry(UUIDModel, TimestampedModel):
    """
    A registered customer waiting for a time slot. Positions are 1-based per
    (business, date, time) among WAITING entries and close up when someone leaves.
    """
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='waitlist_entries',
    )
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='waitlist_entries')
    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name='waitlist_entries')
    staff = models.ForeignKey(
        Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='waitlist_entries',
    )
    booking_date = models.DateField()
    booking_time = models.TimeField()
    position = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    notes = models.TextField(blank=True)
    status = models.CharField(
        max_length=10, choices=WaitlistStatus.choices, default=WaitlistStatus.WAITING, db_index=True,
    )
    left_at = models.DateTimeField(null=True, blank=True)

    objects = WaitlistQuerySet.as_manager()

    class Meta:
        verbose_name = 'Waitlist Entry'
        verbose_name_plural = 'Waitlist Entries'
        ordering = ['booking_date', 'booking_time', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['customer', 'business', 'booking_date', 'booking_time'],
                condition=models.Q(status='WAITING'),
                name='uq_waitlist_customer_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['business', 'booking_date', 'booking_time', 'status'],
                         name='ix_waitlist_slot'),
        ]

    def __str__(self):
        return (f"{self.customer} waiting #{self.position} for {self.business.name} "
                f"{self.booking_date} {self.booking_time.strftime('%H:%M')}")
