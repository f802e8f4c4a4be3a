# complaint_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from deps import require_user
from errors import ValidationFailed
from models import IssueType, User
from state import AppState, get_state
from uploads import image_data_url

router = APIRouter(prefix="/api/complaints", tags=["complaints"])


@router.post("", status_code=201)
async def file_complaint(
    issue_type: IssueType = Form(..., alias="issueType"),
    description: str = Form(...),
    photo: Optional[UploadFile] = File(default=None),
    user: User = Depends(require_user),
    state: AppState = Depends(get_state),
):
    """Multipart form: issueType, description and an optional photo."""
    description = description.strip()
    if not description:
        raise ValidationFailed("Please provide a description.", code="errorDescriptionRequired")
    photo_url = await image_data_url(photo) if photo is not None and photo.filename else None
    complaint = state.add_complaint(user.id, issue_type, description, photo_url)
    return complaint.dump()


@router.get("")
def list_complaints(user: User = Depends(require_user), state: AppState = Depends(get_state)):
    return [c.dump() for c in state.complaints_for(user.id)]
