# admin_routes.py
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator

from booking_routes import check_date, check_time
from deps import require_admin
from models import (
    AccountStatus, Admin, BinSize, BookingStatus, ComplaintStatus, Frequency, Payload, SubscriptionPlan, UserOut,
)
from state import AppState, get_state

log = logging.getLogger("greencity.admin")
router = APIRouter(prefix="/api/admin", tags=["admin"])


class UserStatusIn(Payload):
    status: AccountStatus


class PaymentStatusIn(Payload):
    status: Literal["verified", "rejected", "failed"]


class BookingUpdateIn(Payload):
    status: Optional[BookingStatus] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    reminder_enabled: Optional[bool] = None

    validate_date = field_validator("date")(check_date)
    validate_time = field_validator("time")(check_time)


class ComplaintUpdateIn(Payload):
    status: ComplaintStatus


class PlanIn(Payload):
    name: str
    price_per_month: float = Field(gt=0)
    bin_size: BinSize
    frequency: Frequency

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class AnnouncementIn(Payload):
    title: str
    content: str

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Please fill in both title and content for the announcement.")
        return v


class MessageIn(Payload):
    user_id: str
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("message cannot be empty")
        return v


def _with_owner(state: AppState, items: list) -> list:
    # rows whose owner no longer exists are dropped
    users = {u.id: u for u in state.list_users()}
    out = []
    for item in items:
        owner = users.get(item.user_id)
        if owner is None:
            continue
        row = item.dump()
        row["userName"] = owner.name
        row["householdId"] = owner.household_id
        out.append(row)
    return out

# --- users ---------------------------------------------------------------------
@router.get("/users")
def list_users(admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    return [
        {**UserOut.of(u).dump(), "unreadMessages": state.unread_message_count(u.id)}
        for u in state.list_users()
    ]


@router.patch("/users/{user_id}/status")
def set_user_status(user_id: str, payload: UserStatusIn, admin: Admin = Depends(require_admin),
                    state: AppState = Depends(get_state)):
    """Admin-only: active / restricted / blocked."""
    user = state.update_user_status(user_id, payload.status)
    log.info("Admin %s set %s to %s", admin.id, user_id, payload.status)
    return UserOut.of(user).dump()


@router.delete("/users/{user_id}")
def delete_user(user_id: str, confirm: bool = False, admin: Admin = Depends(require_admin),
                state: AppState = Depends(get_state)):
    """Irreversible; the caller must pass ?confirm=true."""
    state.delete_user(user_id, confirm=confirm)
    return {"ok": True, "deleted": user_id}

# --- payments --------------------------------------------------------------------
@router.get("/payments")
def list_payments(status: Optional[str] = None, admin: Admin = Depends(require_admin),
                  state: AppState = Depends(get_state)):
    return _with_owner(state, state.list_payments(status))


@router.patch("/payments/{payment_id}")
def set_payment_status(payment_id: str, payload: PaymentStatusIn, admin: Admin = Depends(require_admin),
                       state: AppState = Depends(get_state)):
    payment = state.update_payment_status(payment_id, payload.status)
    log.info("Admin %s marked payment %s %s", admin.id, payment_id, payload.status)
    return payment.dump()

# --- bookings --------------------------------------------------------------------
@router.get("/bookings")
def list_bookings(admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    return _with_owner(state, state.list_bookings())


@router.patch("/bookings/{booking_id}")
def update_booking(booking_id: str, payload: BookingUpdateIn, admin: Admin = Depends(require_admin),
                   state: AppState = Depends(get_state)):
    return state.update_booking(booking_id, payload.model_dump(exclude_unset=True)).dump()

# --- complaints ------------------------------------------------------------------
@router.get("/complaints")
def list_complaints(admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    return _with_owner(state, state.list_complaints())


@router.patch("/complaints/{complaint_id}")
def update_complaint(complaint_id: str, payload: ComplaintUpdateIn, admin: Admin = Depends(require_admin),
                     state: AppState = Depends(get_state)):
    return state.update_complaint(complaint_id, payload.status).dump()

# --- plans -----------------------------------------------------------------------
@router.get("/plans")
def list_plans(admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    return [p.dump() for p in state.subscription_plans()]


@router.post("/plans", status_code=201)
def add_plan(payload: PlanIn, admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    plan = state.add_subscription_plan(payload.name, payload.price_per_month, payload.bin_size, payload.frequency)
    return plan.dump()


@router.put("/plans/{plan_id}")
def update_plan(plan_id: str, payload: PlanIn, admin: Admin = Depends(require_admin),
                state: AppState = Depends(get_state)):
    plan = SubscriptionPlan(id=plan_id, **payload.model_dump())
    return state.update_subscription_plan(plan).dump()


@router.delete("/plans/{plan_id}")
def delete_plan(plan_id: str, admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    state.delete_subscription_plan(plan_id)
    return {"ok": True, "deleted": plan_id}

# --- messaging -------------------------------------------------------------------
@router.post("/announcements", status_code=201)
def create_announcement(payload: AnnouncementIn, admin: Admin = Depends(require_admin),
                        state: AppState = Depends(get_state)):
    return state.create_announcement(payload.title, payload.content).dump()


@router.post("/messages", status_code=201)
def send_message(payload: MessageIn, admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    return state.send_admin_message(payload.user_id, payload.text).dump()


@router.get("/messages/{user_id}")
def conversation(user_id: str, admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)):
    state.get_user(user_id)
    return [m.dump() for m in state.conversation(user_id)]
