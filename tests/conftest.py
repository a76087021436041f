from datetime import time
from decimal import Decimal
from itertools import count

import pytest
from django.utils import timezone

from apps.businesses.models import Business, OperatingHours
from apps.services.models import Service
from apps.staff.models import Staff
from apps.bookings import engine
from apps.bookings.parties import BookingRequest, GuestParty, RegisteredParty

from tests.clock import NOW, TOMORROW


@pytest.fixture
def freeze(monkeypatch):
    """Pin django.utils.timezone.now(); call again to move the clock."""
    def _freeze(moment):
        monkeypatch.setattr(timezone, 'now', lambda: moment)
        return moment
    return _freeze


@pytest.fixture(autouse=True)
def frozen_now(freeze):
    return freeze(NOW)


@pytest.fixture
def owner(django_user_model):
    return django_user_model.objects.create_user(
        username='owner', email='owner@example.com', password='pw',
    )


@pytest.fixture
def make_customer(django_user_model):
    seq = count(1)

    def _make(**kwargs):
        n = next(seq)
        kwargs.setdefault('username', f'customer{n}')
        kwargs.setdefault('email', f'customer{n}@example.com')
        return django_user_model.objects.create_user(password='pw', **kwargs)
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer(username='somchai', email='somchai@example.com', first_name='Somchai')


@pytest.fixture
def business(owner):
    business = Business.objects.create(owner=owner, name='Baan Spa', phone='021234567')
    for weekday in range(7):
        OperatingHours.objects.create(
            business=business, weekday=weekday,
            open_time=time(9, 0), close_time=time(18, 0),
        )
    return business


@pytest.fixture
def service(business):
    return Service.objects.create(
        business=business, name='Thai Massage', duration_minutes=60, price=Decimal('500.00'),
    )


@pytest.fixture
def staff_s1(business):
    return Staff.objects.create(business=business, name='Nok')


@pytest.fixture
def staff_s2(business):
    return Staff.objects.create(business=business, name='Ploy')


@pytest.fixture
def guest_party():
    return GuestParty(name='Malee Guest', email='Malee@Example.com', phone='081 234 5678')


@pytest.fixture
def book(business, service):
    """Create a booking through the engine with sensible defaults."""
    def _book(party, booking_date=TOMORROW, booking_time=time(14, 0), type='TIME_SLOT',
              staff=None, **kwargs):
        request = BookingRequest(
            party=party,
            business_id=kwargs.pop('business_id', business.pk),
            service_id=kwargs.pop('service_id', service.pk),
            booking_date=booking_date,
            type=type,
            booking_time=booking_time if type == 'TIME_SLOT' else None,
            staff_id=staff.pk if staff else None,
            **kwargs,
        )
        if isinstance(party, GuestParty):
            return engine.create_guest_booking(request)
        return engine.create_booking(request)
    return _book


@pytest.fixture
def customer_booking(book, customer):
    return book(RegisteredParty(customer))


@pytest.fixture
def guest_booking(book, guest_party):
    return book(guest_party)

