# ABOUTME: Client-side auth session: token + user, sign in/up/out, resend confirmation, change listeners.
# ABOUTME: A session for an unconfirmed email is never kept; sign-in then reports "unconfirmed" instead.

import logging
from typing import Any, Callable, MutableMapping, Optional

from core.validation import normalize_email, validate_email, validate_name, validate_password_length
from ui.api_client import APIError, TrackerAPI
from ui.client_storage import ClientStorage

ACCESS_TOKEN_KEY = "access_token"

SIGNED_IN = "signed_in"
SIGNED_OUT = "signed_out"
# Emitted while the token is still valid so pending writes can go out first.
SIGNING_OUT = "signing_out"
UNCONFIRMED = "unconfirmed"
CONFIRMATION_SENT = "confirmation_sent"

Listener = Callable[[str, Optional[dict]], None]


class SessionContext:
    """Holds who is signed in. state is where the token lives between reruns (st.session_state in the app)."""

    def __init__(self, api: TrackerAPI, storage: ClientStorage, state: MutableMapping[str, Any]):
        self.api = api
        self.storage = storage
        self.state = state
        self.user: Optional[dict] = None
        self.loading = True
        self._listeners: list[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(event, user) on every sign-in/out; returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def teardown(self) -> None:
        self._listeners.clear()

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self.user)

    def _set_session(self, token: str, user: dict) -> None:
        self.state[ACCESS_TOKEN_KEY] = token
        self.api.token = token
        self.user = user
        self._emit(SIGNED_IN)

    def _drop_token(self) -> None:
        self.state.pop(ACCESS_TOKEN_KEY, None)
        self.api.token = None

    def init(self) -> Optional[dict]:
        """Restore the session from a stored token. Invalid, expired or unconfirmed tokens are discarded."""
        token = self.state.get(ACCESS_TOKEN_KEY)
        self.user = None
        if token:
            self.api.token = token
            try:
                user = self.api.session()
            except APIError as e:
                if e.status_code not in (401, 403):
                    logging.warning("Session lookup failed: %s", e.message)
                self._drop_token()
            else:
                if user.get("email_confirmed_at"):
                    self.user = user
                else:
                    self._drop_token()
        self.loading = False
        return self.user

    def sign_up(self, email: str, password: str, name: str) -> str:
        """Create the account. Returns SIGNED_IN when no confirmation is needed, else CONFIRMATION_SENT."""
        validate_email(email)
        validate_password_length(password)
        validate_name(name)
        email = normalize_email(email)
        result = self.api.signup(email, password, name.strip())
        self.storage.set_signup_email(email)
        token = result.get("access_token")
        if token and not result.get("confirmation_required"):
            self.storage.set_change_account(False)
            self._set_session(token, result["user"])
            return SIGNED_IN
        return CONFIRMATION_SENT

    def sign_in(self, email: str, password: str) -> str:
        """Returns SIGNED_IN, or UNCONFIRMED after silently dropping the session of an unconfirmed user."""
        validate_email(email)
        if not password:
            raise ValueError("Please enter your password.")
        email = normalize_email(email)
        result = self.api.login(email, password)
        user = result.get("user") or {}
        if result.get("confirmation_required") or not user.get("email_confirmed_at"):
            self._drop_token()
            self.user = None
            self.storage.set_signup_email(email)
            self._emit(SIGNED_OUT)
            return UNCONFIRMED
        self.storage.set_change_account(False)
        self._set_session(result["access_token"], user)
        return SIGNED_IN

    def sign_out(self) -> None:
        self._emit(SIGNING_OUT)
        self._drop_token()
        self.user = None
        self._emit(SIGNED_OUT)

    def resend_confirmation(self, email: Optional[str] = None) -> None:
        """Re-send to the given address, or to the stored signup email."""
        target = normalize_email(email or self.storage.signup_email() or "")
        validate_email(target)
        self.api.resend_confirmation(target)
