# ABOUTME: /auth routes: signup, login, session lookup, resend confirmation and the email confirmation link.
# ABOUTME: Confirmation links are logged rather than mailed; /auth/confirm redirects back to the client app.

import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from api.errors import message
from core.auth import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    create_confirmation_token,
    decode_confirmation_token,
    get_session_user,
    hash_password,
    is_confirmed,
    verify_password,
)
from core.config import ACCESS_TOKEN_EXPIRE_MINUTES, API_URL, APP_URL, REQUIRE_EMAIL_CONFIRMATION
from core.database import User, get_session
from core.schemas import UserRecord, VerificationStatus
from core.validation import normalize_email, validate_email, validate_name, validate_password_length

auth_router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ResendRequest(BaseModel):
    email: str


class AuthResponse(BaseModel):
    """User plus, when a usable session exists, its bearer token."""

    user: UserRecord
    access_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    confirmation_required: bool = False


def user_record(user: User) -> UserRecord:
    return UserRecord(
        id=str(user.id),
        email=user.email,
        name=user.name,
        email_confirmed_at=user.email_confirmed_at,
    )


def confirmation_link(email: str) -> str:
    return f"{API_URL}/auth/confirm?{urlencode({'token': create_confirmation_token(email)})}"


def send_confirmation(email: str) -> None:
    """No mail transport is configured; the link is written to the server log."""
    logging.warning("Confirmation link for %s: %s", email, confirmation_link(email))


def verification_redirect(result: VerificationStatus) -> RedirectResponse:
    query = urlencode({"page": "/app", "verification_status": result.value})
    return RedirectResponse(url=f"{APP_URL}/?{query}", status_code=303)


def _with_token(user: User) -> AuthResponse:
    return AuthResponse(
        user=user_record(user),
        access_token=create_access_token(user.id),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@auth_router.post("/signup", status_code=201, response_model=AuthResponse)
def post_signup(req: SignupRequest):
    """Create an account. A token is returned only when email confirmation is switched off."""
    try:
        validate_email(req.email)
        validate_password_length(req.password)
        validate_name(req.name)
    except ValueError as e:
        return message(400, str(e))
    email = normalize_email(req.email)
    try:
        with get_session() as session:
            user = User(
                email=email,
                name=req.name.strip(),
                password_hash=hash_password(req.password),
                email_confirmed_at=None if REQUIRE_EMAIL_CONFIRMATION else datetime.now(timezone.utc),
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            if is_confirmed(user):
                return _with_token(user)
            send_confirmation(user.email)
            return AuthResponse(user=user_record(user), confirmation_required=True)
    except IntegrityError:
        return message(409, "An account with this email already exists.")
    except SQLAlchemyError:
        logging.exception("post_signup failed (database error)")
        return message(500, "Could not create account.")


@auth_router.post("/login", response_model=AuthResponse)
def post_login(req: LoginRequest):
    """Authenticate and return a JWT. Unconfirmed users get a token too; the client discards it."""
    with get_session() as session:
        stmt = select(User).where(User.email == normalize_email(req.email))
        user = session.exec(stmt).first()
    password_hash = user.password_hash if user else DUMMY_PASSWORD_HASH
    if not verify_password(req.password, password_hash) or user is None:
        return message(401, "Invalid email or password.")
    response = _with_token(user)
    response.confirmation_required = not is_confirmed(user)
    return response


@auth_router.get("/session", response_model=UserRecord)
def get_auth_session(user: User = Depends(get_session_user)):
    """Who the bearer token belongs to, including whether their email is confirmed."""
    return user_record(user)


@auth_router.post("/resend-confirmation", status_code=202)
def post_resend_confirmation(req: ResendRequest):
    """Re-send the confirmation link. Always 202 so account existence is not revealed."""
    email = normalize_email(req.email)
    with get_session() as session:
        user = session.exec(select(User).where(User.email == email)).first()
    if user is not None and not is_confirmed(user):
        send_confirmation(user.email)
    return {"message": "If that account is awaiting confirmation, a new link has been sent."}


@auth_router.get("/confirm")
def get_confirm(token: str = Query("")):
    """Target of the emailed link: confirm the address and bounce the browser back to the app."""
    email = decode_confirmation_token(token) if token else None
    if email is None:
        return verification_redirect(VerificationStatus.FAILURE)
    try:
        with get_session() as session:
            user = session.exec(select(User).where(User.email == email)).first()
            if user is None:
                return verification_redirect(VerificationStatus.FAILURE)
            if is_confirmed(user):
                return verification_redirect(VerificationStatus.ALREADY_VERIFIED)
            user.email_confirmed_at = datetime.now(timezone.utc)
            session.add(user)
            session.commit()
    except SQLAlchemyError:
        logging.exception("get_confirm failed (database error)")
        return verification_redirect(VerificationStatus.FAILURE)
    return verification_redirect(VerificationStatus.SUCCESS)
