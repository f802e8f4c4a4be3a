# auth.py
from datetime import datetime, timedelta, timezone
from typing import Tuple
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from errors import AuthError

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


# --- Password helpers ---
def get_password_hash(password: str) -> str:
    return pwd_ctx.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_ctx.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


# --- Tokens ---
# sub is "<role>:<id>" so a token names exactly one kind of principal
def create_access_token(role: str, principal_id: str, expires_minutes: int = config.ACCESS_TOKEN_EXPIRE_MIN) -> str:
    to_encode = {
        "sub": f"{role}:{principal_id}",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALG)


def decode_token(token: str) -> Tuple[str, str, str, int]:
    """Returns (role, principal_id, jti, exp)."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError:
        raise AuthError("Invalid token", code="errorInvalidToken")
    sub = payload.get("sub") or ""
    role, _, principal_id = sub.partition(":")
    if role not in ("user", "admin") or not principal_id:
        raise AuthError("Invalid token payload", code="errorInvalidToken")
    return role, principal_id, payload.get("jti", ""), int(payload.get("exp", 0))
