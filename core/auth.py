# ABOUTME: Password hashing, JWT access/confirmation tokens for API auth.
# ABOUTME: get_current_user dependency for FastAPI only admits users whose email is confirmed.

import bcrypt
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    CONFIRMATION_TOKEN_EXPIRE_HOURS,
    SECRET_KEY,
)
from core.database import User, get_session
from core.validation import normalize_email

_http_bearer = HTTPBearer(auto_error=False)

# bcrypt truncates passwords at 72 bytes; we hash utf-8 bytes.
_BCRYPT_MAX_PASSWORD_BYTES = 72

ACCESS_PURPOSE = "access"
CONFIRMATION_PURPOSE = "email_confirmation"

# Pre-computed bcrypt hash for a constant string; used when user is None so login
# always runs verify_password (constant-time, prevents email enumeration).
DUMMY_PASSWORD_HASH = "$2b$12$DbmI/yRDB5j9Q8I7R9cb5.9jZPh/c32i4pA35t4vTf2jdq32n.L.S"


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(plain: str) -> str:
    """bcrypt hash of the password's first 72 UTF-8 bytes."""
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("ascii"))


def _encode(sub: str, purpose: str, lifetime: timedelta) -> str:
    expire = datetime.now(timezone.utc) + lifetime
    payload = {"sub": sub, "purpose": purpose, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def _decode(token: str, purpose: str) -> str | None:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != purpose:
        return None
    return payload.get("sub")


def create_access_token(user_id: UUID) -> str:
    """Build a JWT with sub=user_id and exp set from ACCESS_TOKEN_EXPIRE_MINUTES."""
    return _encode(str(user_id), ACCESS_PURPOSE, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def decode_access_token(token: str) -> UUID | None:
    """Decode the JWT and return the subject (user id) or None if invalid/expired."""
    sub = _decode(token, ACCESS_PURPOSE)
    if sub is None:
        return None
    try:
        return UUID(sub)
    except ValueError:
        return None


def create_confirmation_token(email: str) -> str:
    """Token embedded in the confirmation link; only valid for confirming that email."""
    return _encode(
        normalize_email(email),
        CONFIRMATION_PURPOSE,
        timedelta(hours=CONFIRMATION_TOKEN_EXPIRE_HOURS),
    )


def decode_confirmation_token(token: str) -> str | None:
    """Return the email the token confirms, or None if invalid/expired."""
    return _decode(token, CONFIRMATION_PURPOSE)


def is_confirmed(user: User) -> bool:
    return user.email_confirmed_at is not None


def _user_from_credentials(credentials: HTTPAuthorizationCredentials | None) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    with get_session() as session:
        user = session.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_session_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
) -> User:
    """FastAPI dependency: any valid Bearer token, confirmed or not. Used for session lookup."""
    return _user_from_credentials(credentials)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
) -> User:
    """FastAPI dependency: require a Bearer token for a confirmed user; 401 otherwise, 403 if unconfirmed."""
    user = _user_from_credentials(credentials)
    if not is_confirmed(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email not confirmed",
        )
    return user
