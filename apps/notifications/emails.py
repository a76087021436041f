"""
Email notification sink for booking events.

Fire-and-forget: notify() schedules the email with transaction.on_commit so
it is only sent once the booking change is durable, and a failing mail
server is logged, never raised back into the booking flow.

Public API:
  notify(event, booking)        event in {'created', 'rescheduled', 'cancelled'}
  send_booking_created(booking)
  send_booking_rescheduled(booking)
  send_booking_cancelled(booking)
"""
import logging
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.template.loader import render_to_string

from apps.bookings.identifiers import format_booking_number

logger = logging.getLogger(__name__)

EVENTS = ('created', 'rescheduled', 'cancelled')


def _booking_context(booking) -> dict:
    """Common template context for all booking emails."""
    return {
        'customer_name':  booking.party_name,
        'service_name':   booking.service.name,
        'staff_name':     booking.staff.name if booking.staff_id else '',
        'business_name':  booking.business.name,
        'business_phone': booking.business.phone,
        'booking_type':   booking.type,
        'booking_date':   booking.booking_date,
        'booking_time':   booking.booking_time,
        'queue_number':   booking.queue_number,
        'duration':       booking.estimated_duration,
        'booking_ref':    format_booking_number(booking.booking_number),
        'access_url':     _access_url(booking),
        'support_email':  settings.DEFAULT_FROM_EMAIL,
    }


def _access_url(booking) -> str:
    """Token link for guests, account page for registered customers."""
    base = getattr(settings, 'SITE_URL', 'http://127.0.0.1:8000')
    if booking.is_guest_booking:
        return f"{base}/bookings/guest/{booking.guest_lookup_token}/"
    return f"{base}/bookings/{booking.id}/"


def _send(subject: str, to_email: str, html_template: str, txt_template: str, context: dict):
    """Low-level send helper — builds multipart email with HTML + text fallback."""
    if not to_email:
        logger.warning('Email skipped — no email address for booking %s', context.get('booking_ref'))
        return

    try:
        text_body = render_to_string(txt_template, context)
        html_body = render_to_string(html_template, context)

        msg = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[to_email],
        )
        msg.attach_alternative(html_body, 'text/html')
        msg.send(fail_silently=False)
        logger.info('Email "%s" sent to %s', subject, to_email)
    except Exception as exc:
        # Log but never crash the booking flow due to email failure
        logger.exception('Failed to send email "%s" to %s: %s', subject, to_email, exc)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def send_booking_created(booking):
    ctx = _booking_context(booking)
    ctx['lookup_token'] = booking.guest_lookup_token if booking.is_guest_booking else ''

    _send(
        subject=f'Booking Confirmed - {booking.service.name} on {booking.booking_date.strftime("%d %b %Y")}',
        to_email=booking.party_email,
        html_template='emails/booking_created.html',
        txt_template='emails/booking_created.txt',
        context=ctx,
    )


def send_booking_rescheduled(booking):
    _send(
        subject=f'Booking Updated - {booking.service.name} on {booking.booking_date.strftime("%d %b %Y")}',
        to_email=booking.party_email,
        html_template='emails/booking_rescheduled.html',
        txt_template='emails/booking_rescheduled.txt',
        context=_booking_context(booking),
    )


def send_booking_cancelled(booking):
    ctx = _booking_context(booking)
    ctx['cancellation_reason'] = booking.cancellation_reason or ''

    _send(
        subject=f'Booking Cancelled - {booking.service.name} on {booking.booking_date.strftime("%d %b %Y")}',
        to_email=booking.party_email,
        html_template='emails/booking_cancelled.html',
        txt_template='emails/booking_cancelled.txt',
        context=ctx,
    )


_SENDERS = {
    'created':     send_booking_created,
    'rescheduled': send_booking_rescheduled,
    'cancelled':   send_booking_cancelled,
}


def notify(event: str, booking) -> None:
    """
    Queue the email for `event` to go out after the surrounding transaction
    commits (immediately when there is none). Never raises.
    """
    sender = _SENDERS.get(event)
    if sender is None:
        logger.error('Unknown booking notification event %r for %s', event, booking.booking_number)
        return

    def _dispatch():
        try:
            sender(booking)
        except Exception:
            logger.exception('Notification %r failed for booking %s', event, booking.booking_number)

    transaction.on_commit(_dispatch)
