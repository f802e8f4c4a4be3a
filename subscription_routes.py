# subscription_routes.py
from fastapi import APIRouter, Depends

from deps import require_user
from models import Payload, User
from state import AppState, get_state
import upi

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


class ChangePlanIn(Payload):
    plan_id: str


@router.get("/plans")
def list_plans(state: AppState = Depends(get_state)):
    return [p.dump() for p in state.subscription_plans()]


@router.get("")
def current_subscription(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    plans = {p.id: p for p in state.subscription_plans()}
    plan = plans.get(user.subscription.plan_id)
    return {
        "subscription": user.subscription.dump(),
        "plan": plan.dump() if plan else None,
    }


@router.get("/quote/{plan_id}")
def quote(plan_id: str, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    """Price difference for switching; positive means an upgrade charge."""
    current = state.get_plan(user.subscription.plan_id)
    target = state.get_plan(plan_id)
    difference = round(target.price_per_month - current.price_per_month, 2)
    return {"from": current.id, "to": target.id, "difference": difference, "chargeNow": max(difference, 0)}


@router.post("")
def change_plan(payload: ChangePlanIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    """
    Downgrades apply immediately. Upgrades return a pending payment plus the
    UPI intent for the difference; the plan only changes once it is verified.
    """
    result = state.update_subscription(user.id, payload.plan_id)
    payment = result["payment"]
    return {
        "committed": result["committed"],
        "difference": result["difference"],
        "subscription": result["user"].subscription.dump(),
        "payment": payment.dump() if payment else None,
        "intent": upi.payment_intent(payment.amount, "Plan Upgrade") if payment else None,
    }
