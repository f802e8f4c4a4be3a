# auth_routes.py
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import EmailStr, field_validator

import config
from auth import create_access_token
from deps import get_current_principal, get_token_claims, require_user
from errors import ValidationFailed
from models import AdminOut, Payload, Principal, User, UserOut
from state import AppState, get_state

log = logging.getLogger("greencity.auth")
router = APIRouter(prefix="/api", tags=["auth"])

MOBILE_RE = re.compile(r"^[6-9]\d{9}$")


def check_mobile(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not MOBILE_RE.match(v):
        raise ValueError("mobile must be a 10 digit number")
    return v


def check_password(v: str) -> str:
    if v is None or len(v) < config.PASSWORD_MIN_LEN:
        raise ValueError(f"password must be at least {config.PASSWORD_MIN_LEN} characters")
    return v


def check_not_blank(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("cannot be empty")
    return v


def check_picture(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.startswith("data:image/"):
        raise ValueError("profile picture must be an image data URL")
    return v


class SignupIn(Payload):
    name: str
    email: EmailStr
    password: str
    address: str
    mobile: Optional[str] = None

    validate_text = field_validator("name", "address")(check_not_blank)
    validate_password = field_validator("password")(check_password)
    validate_mobile = field_validator("mobile")(check_mobile)


class AdminLoginIn(Payload):
    mobile: str
    password: str


class ForgotIn(Payload):
    email: EmailStr


class ResetIn(Payload):
    email: EmailStr
    code: str
    new_password: str

    validate_password = field_validator("new_password")(check_password)


class ProfileIn(Payload):
    name: Optional[str] = None
    address: Optional[str] = None
    mobile: Optional[str] = None
    profile_picture: Optional[str] = None

    validate_mobile = field_validator("mobile")(check_mobile)
    validate_picture = field_validator("profile_picture")(check_picture)

    @field_validator("name", "address")
    @classmethod
    def not_blank_if_given(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else check_not_blank(v)


def _token_response(role: str, principal_id: str, body: dict) -> dict:
    return {"access_token": create_access_token(role, principal_id), "token_type": "bearer", **body}


def user_view(state: AppState, user: User) -> dict:
    out = UserOut.of(user).dump()
    out["profilePicture"] = out.get("profilePicture") or state.profile_picture(user.id)
    out["greenBadge"] = state.has_green_badge(user.id)
    out["unreadMessages"] = state.unread_message_count(user.id)
    return out


async def _read_credentials(request: Request) -> tuple:
    """JSON or form body; identifier may arrive as email, mobile or username."""
    ctype = (request.headers.get("content-type") or "").lower()
    try:
        if ctype.startswith("application/json"):
            data = await request.json()
        else:
            data = dict(await request.form())
    except Exception:
        raise ValidationFailed("Malformed login body")
    if not isinstance(data, dict):
        raise ValidationFailed("Malformed login body")
    identifier = (data.get("identifier") or data.get("email") or data.get("mobile") or data.get("username") or "")
    return str(identifier).strip(), str(data.get("password") or "")


@router.post("/signup", status_code=201)
def signup(payload: SignupIn, state: AppState = Depends(get_state)):
    user = state.signup(payload.name, str(payload.email), payload.password, payload.address, payload.mobile)
    return _token_response("user", user.id, {"user": user_view(state, user)})


@router.post("/login")
async def login(request: Request, state: AppState = Depends(get_state)):
    """Household login by email or mobile. Accepts form (OAuth2) or JSON."""
    identifier, password = await _read_credentials(request)
    if not identifier or not password:
        raise ValidationFailed("Email/mobile and password required")
    user = state.login(identifier, password)
    return _token_response("user", user.id, {"user": user_view(state, user)})


@router.post("/admin/login")
def admin_login(payload: AdminLoginIn, state: AppState = Depends(get_state)):
    admin = state.admin_login(payload.mobile, payload.password)
    log.info("Admin %s logged in", admin.id)
    return _token_response("admin", admin.id, {"admin": AdminOut.of(admin).dump()})


@router.post("/logout")
def logout(claims=Depends(get_token_claims), state: AppState = Depends(get_state)):
    _, _, jti, exp = claims
    if jti:
        state.revoke_token(jti, exp)
    return {"ok": True}


@router.post("/password/forgot")
def forgot_password(payload: ForgotIn, state: AppState = Depends(get_state)):
    code = state.request_password_reset(str(payload.email))
    # no mail transport; the code goes to the operator log
    log.info("Password reset code for %s: %s", payload.email, code)
    return {"ok": True, "expiresInMinutes": config.RESET_CODE_TTL_MIN}


@router.post("/password/reset")
def reset_password(payload: ResetIn, state: AppState = Depends(get_state)):
    state.verify_reset_code(str(payload.email), payload.code)
    state.reset_password(str(payload.email), payload.new_password)
    return {"ok": True}


@router.get("/profile")
def profile(principal: Principal = Depends(get_current_principal), state: AppState = Depends(get_state)):
    if isinstance(principal, User):
        return user_view(state, principal)
    return AdminOut.of(principal).dump()


@router.patch("/profile")
def update_profile(payload: ProfileIn, user: User = Depends(require_user), state: AppState = Depends(get_state)):
    updated = state.update_profile(user.id, payload.model_dump(exclude_unset=True))
    return user_view(state, updated)
