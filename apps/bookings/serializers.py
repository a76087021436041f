"""
Plain-dict representations of bookings for JsonResponse.

Computed flags (is_today, is_past, can_cancel, can_modify,
time_until_booking) are derived here at read time and never stored.
"""
from apps.bookings.identifiers import format_booking_number


def _iso(value):
    return value.isoformat() if value is not None else None


def serialize_booking(booking, include_token=False, guest_view=False) -> dict:
    data = {
        'id': str(booking.id),
        'booking_number': booking.booking_number,
        'booking_number_display': format_booking_number(booking.booking_number),
        'type': booking.type,
        'status': booking.status,
        'booking_date': booking.booking_date.isoformat(),
        'booking_time': booking.booking_time.strftime('%H:%M') if booking.booking_time else None,
        'queue_number': booking.queue_number,
        'estimated_duration': booking.estimated_duration,
        'notes': booking.notes,
        'cancellation_reason': booking.cancellation_reason,
        'is_guest_booking': booking.is_guest_booking,
        'customer_name': booking.party_name,
        'business': {
            'id': str(booking.business_id),
            'name': booking.business.name,
            'phone': booking.business.phone,
            'address': booking.business.address,
        },
        'service': {
            'name': booking.service.name,
            'duration': booking.estimated_duration,
            'price': str(booking.price_snapshot),
        },
        'staff': {'name': booking.staff.name} if booking.staff_id else None,
        'is_today': booking.is_today,
        'is_past': booking.is_past,
        # Guests may only cancel before check-in
        'can_cancel': booking.can_cancel and not (guest_view and booking.status != 'CONFIRMED'),
        'can_modify': booking.can_modify,
        'time_until_booking': booking.time_until_booking,
        'created_at': _iso(booking.created_at),
        'updated_at': _iso(booking.updated_at),
    }
    if booking.is_guest_booking:
        data['customer_email'] = booking.customer_email
        data['customer_phone'] = booking.customer_phone
    if include_token and booking.is_guest_booking:
        data['guest_lookup_token'] = booking.guest_lookup_token
    return data


def serialize_waitlist_entry(entry) -> dict:
    return {
        'id': str(entry.id),
        'status': entry.status,
        'position': entry.position,
        'booking_date': entry.booking_date.isoformat(),
        'booking_time': entry.booking_time.strftime('%H:%M'),
        'notes': entry.notes,
        'business': {'id': str(entry.business_id), 'name': entry.business.name},
        'service': {
            'name': entry.service.name,
            'duration': entry.service.duration_minutes,
            'price': str(entry.service.price),
        },
        'staff': {'name': entry.staff.name} if entry.staff_id else None,
        'left_at': _iso(entry.left_at),
        'created_at': _iso(entry.created_at),
    }
