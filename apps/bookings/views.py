"""
Booking JSON API.

Customers are identified by the Django session; guests only by the lookup
token in the URL. Every engine rejection is turned into
{'success': False, 'message': ...} with the matching status code by
engine_errors_as_json.
"""
import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from . import engine, guest_access
from .decorators import customer_required, engine_errors_as_json
from .exceptions import ValidationError
from .forms import (
    STATUS_EVENTS,
    AvailabilityForm,
    BookingForm,
    CancelForm,
    GuestActionForm,
    GuestBookingForm,
    QueueStatusForm,
    RescheduleForm,
    StatusUpdateForm,
    WaitlistForm,
)
from .parties import (
    BookingRequest,
    CustomerActor,
    GuestParty,
    RegisteredParty,
    RescheduleChanges,
)
from .serializers import serialize_booking, serialize_waitlist_entry

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError('Request body must be valid JSON.')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.')
    return data


def _form_errors(form):
    errors = [
        f'{field}: {message}' if field != '__all__' else message
        for field, messages in form.errors.items()
        for message in messages
    ]
    return JsonResponse(
        {'success': False, 'message': 'Please correct the errors below.', 'errors': errors},
        status=400,
    )


def _ok(data, status=200):
    return JsonResponse({'success': True, 'data': data}, status=status)


def _request_from(form, party) -> BookingRequest:
    cd = form.cleaned_data
    return BookingRequest(
        party=party,
        business_id=cd['business_id'],
        service_id=cd['service_id'],
        booking_date=cd['booking_date'],
        type=cd['type'],
        booking_time=cd.get('booking_time'),
        staff_id=cd.get('staff_id'),
        notes=cd.get('notes') or '',
    )


# ─────────────────────────────────────────────────────────────────────────────
# Customer bookings
# ─────────────────────────────────────────────────────────────────────────────

@require_http_methods(['GET', 'POST'])
@customer_required
@engine_errors_as_json
def booking_collection(request):
    """
    GET  /bookings/?status=CONFIRMED&limit=10   list the caller's bookings
    POST /bookings/                              create a booking
    """
    actor = CustomerActor(request.user)

    if request.method == 'GET':
        limit = request.GET.get('limit')
        if limit is not None and not (limit.isdigit() and int(limit) > 0):
            raise ValidationError('limit must be a positive integer.')
        bookings = engine.list_bookings(
            actor,
            status=request.GET.get('status') or None,
            limit=int(limit) if limit else None,
        )
        return _ok([serialize_booking(b) for b in bookings])

    form = BookingForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)

    booking = engine.create_booking(_request_from(form, RegisteredParty(request.user)))
    return _ok(serialize_booking(booking), status=201)


@require_http_methods(['GET', 'PUT', 'DELETE'])
@customer_required
@engine_errors_as_json
def booking_detail(request, booking_id):
    """
    GET    /bookings/<id>/   view
    PUT    /bookings/<id>/   reschedule (booking_date, booking_time, staff_id, notes)
    DELETE /bookings/<id>/   cancel (reason)
    """
    actor = CustomerActor(request.user)

    if request.method == 'GET':
        return _ok(serialize_booking(engine.get_booking(booking_id, actor)))

    data = _json_body(request)

    if request.method == 'PUT':
        form = RescheduleForm(data)
        if not form.is_valid():
            return _form_errors(form)
        cd = form.cleaned_data
        changes = RescheduleChanges(
            booking_date=cd.get('booking_date'),
            booking_time=cd.get('booking_time'),
            staff_id=cd.get('staff_id'),
            # An explicit null unassigns the staff member
            clear_staff='staff_id' in data and data['staff_id'] in (None, ''),
            notes=cd['notes'] if 'notes' in data else None,
        )
        booking = engine.reschedule_booking(booking_id, changes, actor)
        return _ok(serialize_booking(booking))

    form = CancelForm(data)
    if not form.is_valid():
        return _form_errors(form)
    booking = engine.cancel_booking(booking_id, form.cleaned_data['reason'], actor)
    return _ok(serialize_booking(booking))


# ─────────────────────────────────────────────────────────────────────────────
# Waitlist
# ─────────────────────────────────────────────────────────────────────────────

@require_http_methods(['GET', 'POST'])
@customer_required
@engine_errors_as_json
def waitlist_collection(request):
    """
    GET  /bookings/waitlist/   the caller's WAITING entries
    POST /bookings/waitlist/   join the line for a taken time slot
    """
    if request.method == 'GET':
        entries = engine.list_waitlist(request.user)
        return _ok([serialize_waitlist_entry(e) for e in entries])

    form = WaitlistForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    cd = form.cleaned_data
    entry = engine.join_waitlist(
        request.user, cd['business_id'], cd['service_id'], cd['booking_date'], cd['booking_time'],
        staff_id=cd.get('staff_id'), notes=cd.get('notes') or '',
    )
    return _ok(serialize_waitlist_entry(entry), status=201)


@require_http_methods(['DELETE'])
@customer_required
@engine_errors_as_json
def waitlist_detail(request, entry_id):
    """DELETE /bookings/waitlist/<id>/   leave the waitlist"""
    entry = engine.leave_waitlist(entry_id, request.user)
    return _ok(serialize_waitlist_entry(entry))


# ─────────────────────────────────────────────────────────────────────────────
# Guest bookings (token access)
# ─────────────────────────────────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['POST'])
@engine_errors_as_json
def guest_booking_create(request):
    """
    POST /bookings/guest/
    The lookup token is returned once, here, and never again in listings.
    """
    form = GuestBookingForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)

    cd = form.cleaned_data
    party = GuestParty(
        name=cd['customer_name'],
        email=cd['customer_email'],
        phone=cd['customer_phone'],
    )
    booking = engine.create_guest_booking(_request_from(form, party))
    return _ok(serialize_booking(booking, include_token=True, guest_view=True), status=201)


@csrf_exempt
@require_http_methods(['GET', 'PUT'])
@engine_errors_as_json
def guest_booking_detail(request, token):
    """
    GET /bookings/guest/<token>/
    PUT /bookings/guest/<token>/   {"action": "cancel", "cancellation_reason": "..."}
    """
    if request.method == 'GET':
        booking = guest_access.get_guest_booking(token)
        return _ok(serialize_booking(booking, guest_view=True))

    form = GuestActionForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    cd = form.cleaned_data
    booking = guest_access.perform(token, cd['action'], cd.get('cancellation_reason') or '')
    return _ok(serialize_booking(booking, guest_view=True))


# ─────────────────────────────────────────────────────────────────────────────
# Public read endpoints
# ─────────────────────────────────────────────────────────────────────────────

@require_GET
@engine_errors_as_json
def availability(request):
    """
    GET /bookings/availability/?business_id=<uuid>&service_id=<uuid>&date=YYYY-MM-DD[&staff_id=<uuid>]
    """
    form = AvailabilityForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    cd = form.cleaned_data
    result = engine.list_available_slots(
        cd['business_id'], cd['service_id'], cd['date'], staff_id=cd.get('staff_id'),
    )
    return _ok(result)


@require_GET
@engine_errors_as_json
def queue_status(request):
    """GET /queue/status/?business_id=<uuid>&date=YYYY-MM-DD"""
    form = QueueStatusForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    return _ok(engine.get_queue_status(form.cleaned_data['business_id'], form.cleaned_data['date']))


# ─────────────────────────────────────────────────────────────────────────────
# Business side
# ─────────────────────────────────────────────────────────────────────────────

@require_http_methods(['PUT'])
@customer_required
@engine_errors_as_json
def business_booking_status(request, booking_id):
    """
    PUT /business/bookings/<id>/status/   {"status": "CHECKED_IN", "reason": ""}
    Only the owner of the booking's business may move it along.
    """
    form = StatusUpdateForm(_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    cd = form.cleaned_data
    booking = engine.business_transition(
        booking_id, STATUS_EVENTS[cd['status']], request.user, reason=cd.get('reason') or '',
    )
    return _ok(serialize_booking(booking))
