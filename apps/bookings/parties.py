"""
Who books and who acts.

A booking belongs to exactly one party:
  RegisteredParty(customer)            — an authenticated user
  GuestParty(name, email, phone)       — no account; gets a lookup token

A request acting on an existing booking is made by an actor:
  CustomerActor(user)                  — resolved from the login session
  GuestActor(token)                    — proves possession of the lookup token

Guest phone numbers are normalised to the Thai mobile format so duplicate
checks match regardless of how the number was typed:
  +66 81 234 5678  →  0812345678
  66812345678      →  0812345678
  081-234-5678     →  0812345678
  812345678        →  0812345678
"""
import re
import secrets
from dataclasses import dataclass
from datetime import date as date_type, time as time_type
from typing import Optional, Union

THAI_MOBILE_RE = re.compile(r'^0[6-9]\d{8}$')


def normalize_phone(raw: str) -> str:
    """
    Normalise a Thai mobile number to 10 digits starting with 0.

    Steps:
      1. Strip all non-digit characters (spaces, dashes, +, parentheses)
      2. Replace a leading country code 66 with 0
      3. Prepend 0 if the number has no trunk prefix
      4. Validate against 0[6-9]XXXXXXXX

    Raises ValueError if the result is not a valid mobile number.
    """
    digits = re.sub(r'\D', '', raw or '')

    if digits.startswith('66'):
        digits = '0' + digits[2:]
    elif not digits.startswith('0'):
        digits = '0' + digits

    if not THAI_MOBILE_RE.match(digits):
        raise ValueError(f"Cannot normalise phone number '{raw}' to a Thai mobile number.")
    return digits


# ── Parties ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RegisteredParty:
    customer: object


@dataclass(frozen=True)
class GuestParty:
    name: str
    email: str
    phone: str


Party = Union[RegisteredParty, GuestParty]


# ── Actors ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CustomerActor:
    user: object

    def owns(self, booking) -> bool:
        return not booking.is_guest_booking and booking.customer_id == self.user.pk

    @property
    def label(self) -> str:
        return 'customer'


@dataclass(frozen=True)
class GuestActor:
    token: str

    def owns(self, booking) -> bool:
        return (
            booking.is_guest_booking
            and booking.guest_lookup_token is not None
            and secrets.compare_digest(
                booking.guest_lookup_token.encode(), (self.token or '').encode(),
            )
        )

    @property
    def label(self) -> str:
        return 'guest'


Actor = Union[CustomerActor, GuestActor]


# ── Requests ──────────────────────────────────────────────────────────────────

@dataclass
class BookingRequest:
    party: Party
    business_id: object
    service_id: object
    booking_date: date_type
    type: str = 'TIME_SLOT'
    booking_time: Optional[time_type] = None
    staff_id: Optional[object] = None
    notes: str = ''


@dataclass
class RescheduleChanges:
    booking_date: Optional[date_type] = None
    booking_time: Optional[time_type] = None
    staff_id: Optional[object] = None
    clear_staff: bool = False
    notes: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.booking_date is None and self.booking_time is None
            and self.staff_id is None and not self.clear_staff and self.notes is None
        )
