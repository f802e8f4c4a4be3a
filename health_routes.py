# health_routes.py
from fastapi import APIRouter, Depends

from state import AppState, get_state

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health():
    # super fast: proves the app is mounted
    return {"ok": True}


@router.get("/ready")
def ready(state: AppState = Depends(get_state)):
    # touches the store; never leaks the underlying error
    if state.store.ping():
        return {"ok": True, "store": "up", "verifier": state.verifier.name}
    return {"ok": False, "store": "down", "verifier": state.verifier.name}
