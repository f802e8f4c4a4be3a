# deps.py
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from auth import decode_token
from errors import AccountBlocked, AuthError, NotFound, PermissionDenied
from models import Admin, Principal, User
from state import AppState, get_state

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")


def get_token_claims(token: str = Depends(oauth2_scheme), state: AppState = Depends(get_state)):
    role, principal_id, jti, exp = decode_token(token)
    if jti and state.is_token_revoked(jti):
        raise AuthError("Token has been revoked", code="errorInvalidToken")
    return role, principal_id, jti, exp


def get_current_principal(claims=Depends(get_token_claims), state: AppState = Depends(get_state)) -> Principal:
    role, principal_id, _, _ = claims
    if role == "admin":
        return state.get_admin(principal_id)
    try:
        user = state.get_user(principal_id)
    except NotFound:
        raise AuthError("User not found", code="errorUserNotFound")
    if user.status == "blocked":
        raise AccountBlocked("This account has been blocked")
    return user


def require_user(principal: Principal = Depends(get_current_principal)) -> User:
    if isinstance(principal, User):
        return principal
    raise PermissionDenied("Household account required")


def require_admin(principal: Principal = Depends(get_current_principal)) -> Admin:
    if isinstance(principal, Admin):
        return principal
    raise PermissionDenied("Admin privileges required")
