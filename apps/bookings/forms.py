"""
Input forms for the booking JSON API. Views bind the decoded request body
(or query string) to these and hand cleaned_data to the engine.
"""
from django import forms

from apps.bookings.models import BookingStatus, BookingType
from apps.bookings.parties import normalize_phone

DATE_FORMATS = ['%Y-%m-%d']
TIME_FORMATS = ['%H:%M']


class BookingForm(forms.Form):
    business_id = forms.UUIDField()
    service_id = forms.UUIDField()
    staff_id = forms.UUIDField(required=False)
    booking_date = forms.DateField(input_formats=DATE_FORMATS)
    booking_time = forms.TimeField(input_formats=TIME_FORMATS, required=False)
    type = forms.ChoiceField(choices=BookingType.choices, required=False)
    notes = forms.CharField(max_length=500, required=False)

    def clean_type(self):
        return self.cleaned_data.get('type') or BookingType.TIME_SLOT

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('type') == BookingType.TIME_SLOT and not cleaned.get('booking_time') \
                and 'booking_time' not in self.errors:
            self.add_error('booking_time', 'Please choose a time for a time slot booking.')
        return cleaned


class GuestBookingForm(BookingForm):
    customer_name = forms.CharField(min_length=2, max_length=100)
    customer_email = forms.EmailField()
    customer_phone = forms.CharField(max_length=20)

    def clean_customer_phone(self):
        raw = self.cleaned_data.get('customer_phone', '')
        try:
            return normalize_phone(raw)
        except ValueError as exc:
            raise forms.ValidationError(
                "Please enter a valid Thai mobile number (e.g. 081 234 5678)."
            ) from exc


class RescheduleForm(forms.Form):
    booking_date = forms.DateField(input_formats=DATE_FORMATS, required=False)
    booking_time = forms.TimeField(input_formats=TIME_FORMATS, required=False)
    staff_id = forms.UUIDField(required=False)
    notes = forms.CharField(max_length=500, required=False)


class CancelForm(forms.Form):
    # Blank reasons are rejected by Booking.cancel, after the already-cancelled check
    reason = forms.CharField(max_length=500, required=False)


class GuestActionForm(forms.Form):
    action = forms.CharField(max_length=20)
    cancellation_reason = forms.CharField(max_length=500, required=False)


# Target status -> lifecycle event for business-side updates
STATUS_EVENTS = {
    BookingStatus.CHECKED_IN:  'check_in',
    BookingStatus.IN_PROGRESS: 'start_service',
    BookingStatus.COMPLETED:   'finish_service',
    BookingStatus.CANCELLED:   'cancel',
    BookingStatus.NO_SHOW:     'mark_no_show',
}


class StatusUpdateForm(forms.Form):
    status = forms.ChoiceField(choices=[(s.value, s.label) for s in STATUS_EVENTS])
    reason = forms.CharField(max_length=500, required=False)


class WaitlistForm(forms.Form):
    business_id = forms.UUIDField()
    service_id = forms.UUIDField()
    staff_id = forms.UUIDField(required=False)
    booking_date = forms.DateField(input_formats=DATE_FORMATS)
    booking_time = forms.TimeField(input_formats=TIME_FORMATS)
    notes = forms.CharField(max_length=500, required=False)


class AvailabilityForm(forms.Form):
    business_id = forms.UUIDField()
    service_id = forms.UUIDField()
    date = forms.DateField(input_formats=DATE_FORMATS)
    staff_id = forms.UUIDField(required=False)


class QueueStatusForm(forms.Form):
    business_id = forms.UUIDField()
    date = forms.DateField(input_formats=DATE_FORMATS)
