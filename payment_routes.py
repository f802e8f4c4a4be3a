# payment_routes.py
from __future__ import annotations
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import Field

import config
from deps import require_user
from models import Payload, User
from state import AppState, get_state
from uploads import image_data_url

router = APIRouter(prefix="/api/payments", tags=["payments"])

# ------------------------- Routes -------------------------------------------

@router.get("/ping")
def ping(state: AppState = Depends(get_state)):
    return {"ok": True, "verifier": state.verifier.name, "currency": config.CURRENCY}


@router.get("/balance")
def balance(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return {"outstandingBalance": state.outstanding_balance(user.id), "currency": config.CURRENCY}


@router.get("/intent")
def payment_intent(
    purpose: Literal["balance", "booking"] = "balance",
    booking_id: Optional[str] = Query(default=None, alias="bookingId"),
    user: User = Depends(require_user),
    state: AppState = Depends(get_state),
):
    """
    The QR/UPI step. Only offered while something is owed; nothing is
    recorded until the user confirms with POST /api/payments.
    """
    return state.payment_intent(user.id, purpose=purpose, booking_id=booking_id)


class InitiateBody(Payload):
    # omitted -> pay the whole outstanding balance
    amount: Optional[float] = Field(default=None, gt=0)


@router.post("", status_code=201)
def initiate_payment(body: InitiateBody, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    payment = state.initiate_payment(user.id, body.amount)
    return payment.dump()


@router.get("")
def list_payments(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return [p.dump() for p in state.payments_for(user.id)]


@router.get("/{payment_id}")
def get_payment(payment_id: str, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.own_payment(user.id, payment_id).dump()


@router.post("/{payment_id}/screenshot")
async def upload_screenshot(
    payment_id: str,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    state: AppState = Depends(get_state),
):
    """Attach proof of transfer; the payment then waits for an administrator."""
    data_url = await image_data_url(file)
    return state.upload_payment_screenshot(user.id, payment_id, data_url).dump()


@router.post("/{payment_id}/confirm")
async def confirm_payment(payment_id: str, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    payment = await state.confirm_payment(user.id, payment_id)
    return payment.dump()


@router.get("/{payment_id}/receipt")
def receipt(payment_id: str, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.payment_receipt(user.id, payment_id)
