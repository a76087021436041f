"""
Booking API URLs.

  /bookings/                               GET list · POST create (customer)
  /bookings/<uuid>/                        GET · PUT reschedule · DELETE cancel
  /bookings/availability/                  GET slot grid for a service and date
  /bookings/waitlist/                      GET own entries · POST join (customer)
  /bookings/waitlist/<uuid>/               DELETE leave
  /bookings/guest/                         POST create guest booking
  /bookings/guest/<token>/                 GET view · PUT {"action": "cancel"}
  /queue/status/                           GET queue board for a business day
  /business/bookings/<uuid>/status/        PUT status update by the business owner
"""
from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    # ── Customer ───────────────────────────────────────────────────────────────
    path('bookings/',                       views.booking_collection,      name='collection'),
    path('bookings/availability/',          views.availability,            name='availability'),
    path('bookings/waitlist/',              views.waitlist_collection,     name='waitlist'),
    path('bookings/waitlist/<uuid:entry_id>/', views.waitlist_detail,      name='waitlist_detail'),
    path('bookings/<uuid:booking_id>/',     views.booking_detail,          name='detail'),

    # ── Guest token access ─────────────────────────────────────────────────────
    path('bookings/guest/',                 views.guest_booking_create,    name='guest_create'),
    path('bookings/guest/<str:token>/',     views.guest_booking_detail,    name='guest_detail'),

    # ── Queue board ────────────────────────────────────────────────────────────
    path('queue/status/',                   views.queue_status,            name='queue_status'),

    # ── Business side ──────────────────────────────────────────────────────────
    path('business/bookings/<uuid:booking_id>/status/',
         views.business_booking_status, name='business_status'),
]
