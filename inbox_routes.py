# inbox_routes.py
from fastapi import APIRouter, Depends

from deps import require_user
from models import User
from state import AppState, get_state

router = APIRouter(prefix="/api/inbox", tags=["inbox"])


@router.get("")
def inbox(mark_read: bool = True, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    """Direct messages and announcements, oldest first. Opening the inbox reads it."""
    items = state.open_inbox(user.id) if mark_read else state.inbox(user.id)
    return [i.dump() for i in items]


@router.get("/unread-count")
def unread_count(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return {"unread": state.unread_message_count(user.id)}


@router.post("/read")
def mark_read(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    state.mark_messages_as_read(user.id)
    return {"unread": state.unread_message_count(user.id)}
