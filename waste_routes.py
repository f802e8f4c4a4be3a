# waste_routes.py
from fastapi import APIRouter, Depends

import config
from deps import require_user
from models import Payload, User, WasteType
from state import AppState, get_state

router = APIRouter(prefix="/api", tags=["waste"])


class WasteLogIn(Payload):
    type: WasteType


@router.post("/waste-logs", status_code=201)
def add_waste_log(payload: WasteLogIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    """
    Record a disposal. ``fined`` is true when this is the third mixed log
    in a row; the client shows the fine notice in that case.
    """
    entry, fined = state.add_waste_log(user.id, payload.type)
    return {
        "log": entry.dump(),
        "fined": fined,
        "fineAmount": config.MIXED_WASTE_FINE if fined else 0,
        "outstandingBalance": state.outstanding_balance(user.id),
    }


@router.get("/waste-logs")
def list_waste_logs(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return [l.dump() for l in state.waste_logs(user.id)]


@router.get("/pickups")
def pickup_history(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return {
        "pickups": [p.dump() for p in state.pickup_history(user.id)],
        "greenBadge": state.has_green_badge(user.id),
    }
