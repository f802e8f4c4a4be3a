# booking_routes.py
from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import field_validator

from deps import require_user
from models import Payload, User
from state import AppState, get_state

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def check_date(v: Optional[str]) -> Optional[str]:
    return v if v is None else date.fromisoformat(v.strip()).isoformat()


def check_time(v: Optional[str]) -> Optional[str]:
    return v if v is None else time.fromisoformat(v.strip()).strftime("%H:%M")


class BookingIn(Payload):
    date: str
    time: str
    notes: str = ""
    reminder_enabled: bool = True

    validate_date = field_validator("date")(check_date)
    validate_time = field_validator("time")(check_time)


@router.post("", status_code=201)
def create_booking(payload: BookingIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    booking = state.add_booking(user.id, payload.date, payload.time, payload.notes.strip(), payload.reminder_enabled)
    return booking.dump()


@router.get("")
def list_bookings(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return [b.dump() for b in state.bookings_for(user.id)]


@router.post("/{booking_id}/pay", status_code=201)
def pay_for_booking(booking_id: str, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    """Start paying the booking fee; the payment then follows the normal checkout."""
    intent = state.payment_intent(user.id, purpose="booking", booking_id=booking_id)
    payment = state.pay_for_booking(user.id, booking_id)
    return {"payment": payment.dump(), "intent": intent}
