# routes_public_config.py
# -*- coding: utf-8 -*-
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import field_validator

import config
from deps import require_user
from models import Payload, User
from state import DEFAULT_PREFERENCES, AppState, get_state

router = APIRouter(prefix="/api", tags=["public"])


@router.get("/public-config")
def public_config(state: AppState = Depends(get_state)):
    """Boot payload for the client: prices, fees and payee details."""
    return {
        "currency": config.CURRENCY,
        "plans": [p.dump() for p in state.subscription_plans()],
        "fees": {
            "specialPickup": config.SPECIAL_PICKUP_FEE,
            "mixedWasteFine": config.MIXED_WASTE_FINE,
            "mixedWasteStreak": config.MIXED_STREAK_LIMIT,
        },
        "payee": {"id": config.UPI_PAYEE_ID, "name": config.UPI_PAYEE_NAME},
        "verifier": state.verifier.name,
        "languages": list(config.LANGUAGES),
        "preferences": dict(DEFAULT_PREFERENCES),
    }


@router.get("/announcements")
def announcements(state: AppState = Depends(get_state)):
    return [a.dump() for a in state.announcements()]


class PreferencesIn(Payload):
    theme: Optional[Literal["light", "dark"]] = None
    language: Optional[str] = None

    @field_validator("language")
    @classmethod
    def known_language(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in config.LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(config.LANGUAGES)}")
        return v


@router.get("/preferences")
def get_preferences(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.preferences(user.id)


@router.put("/preferences")
def put_preferences(payload: PreferencesIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.set_preferences(user.id, theme=payload.theme, language=payload.language)


@router.post("/preferences/toggle-theme")
def toggle_theme(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.toggle_theme(user.id)


class FeedbackIn(Payload):
    text: str

    @field_validator("text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Please enter some feedback before submitting.")
        return v


@router.post("/feedback", status_code=201)
def feedback(payload: FeedbackIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return state.add_feedback(user.id, payload.text).dump()
