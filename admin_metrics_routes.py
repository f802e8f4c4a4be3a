# -*- coding: utf-8 -*-
"""
Admin metrics: dashboard totals computed from the stored collections.
"""
from typing import Dict, Any

from fastapi import APIRouter, Depends

import config
from deps import require_admin
from models import Admin
from state import AppState, get_state

router = APIRouter(prefix="/api/admin", tags=["admin-metrics"])


@router.get("/metrics")
def metrics(admin: Admin = Depends(require_admin), state: AppState = Depends(get_state)) -> Dict[str, Any]:
    totals = state.overview()

    # plan mix: how many households sit on each plan, and the monthly fee they add up to
    plans = {p.id: p for p in state.subscription_plans()}
    mix: Dict[str, Dict[str, Any]] = {}
    for u in state.list_users():
        plan = plans.get(u.subscription.plan_id)
        row = mix.setdefault(u.subscription.plan_id, {
            "name": plan.name if plan else u.subscription.plan_id,
            "households": 0,
            "monthly": 0.0,
        })
        row["households"] += 1
        row["monthly"] = round(row["monthly"] + (plan.price_per_month if plan else 0), 2)

    return {
        "totals": totals,
        "plans": mix,
        "currency": config.CURRENCY,
        "verifier": state.verifier.name,
    }
