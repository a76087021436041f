"""
Guest lookup gateway.

A guest booking is reached only through its lookup token. Booking ids and
booking numbers are never accepted here, and an unknown token is reported
exactly like a wrong one, so the gateway cannot be used to enumerate
bookings. Guests may view or cancel; nothing else.
"""
import logging

from apps.bookings import engine
from apps.bookings.exceptions import ActionNotAllowed, NotFoundError
from apps.bookings.models import Booking
from apps.bookings.parties import GuestActor

logger = logging.getLogger(__name__)

ALLOWED_ACTIONS = ('view', 'cancel')


def resolve(token: str) -> Booking:
    if not token or not isinstance(token, str):
        raise NotFoundError('Booking not found.')
    try:
        return (
            Booking.objects
            .select_related('business', 'service', 'staff')
            .get(guest_lookup_token=token, is_guest_booking=True)
        )
    except Booking.DoesNotExist:
        raise NotFoundError('Booking not found.')


def get_guest_booking(token: str) -> Booking:
    return resolve(token)


def cancel_guest_booking(token: str, reason: str) -> Booking:
    booking = resolve(token)
    return engine.cancel_booking(booking.pk, reason, GuestActor(token))


def perform(token: str, action: str, reason: str = '') -> Booking:
    if action not in ALLOWED_ACTIONS:
        logger.warning('Guest gateway refused action %r', action)
        raise ActionNotAllowed('Only viewing and cancelling are available for guest bookings.')
    if action == 'cancel':
        return cancel_guest_booking(token, reason)
    return get_guest_booking(token)
