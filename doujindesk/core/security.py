"""
Password hashing and JWT bearer authentication for staff accounts.

Tokens carry the staff id in `sub` and the account role in `role`;
admin-only routes check the role claim without a database round trip.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from doujindesk.core.config import get_settings

settings = get_settings()

PBKDF2_ITERATIONS = 260_000

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        _, iterations, salt, expected = hashed_password.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise _unauthorized("Token expired or invalid") from exc
    if payload.get("sub") is None:
        raise _unauthorized("Token expired or invalid")
    return payload


def get_current_user_id(payload: dict = Depends(get_token_payload)) -> int:
    return int(payload["sub"])


def require_admin(payload: dict = Depends(get_token_payload)) -> int:
    if payload.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return int(payload["sub"])


@dataclass(frozen=True)
class StaffIdentity:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_staff(payload: dict = Depends(get_token_payload)) -> StaffIdentity:
    """Caller id and role, for routes where admins may act on anyone's behalf."""
    return StaffIdentity(id=int(payload["sub"]), role=payload.get("role", "staff"))
