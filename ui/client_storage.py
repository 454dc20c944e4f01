# ABOUTME: Small client-local key/value store that survives reruns: signup email, change-account flag, notices.
# ABOUTME: Backed by a JSON file (CLIENT_STATE_PATH) or, with path=None, an in-memory dict for tests.

import json
import logging
import os
from typing import Any, Optional

from core.config import CLIENT_STATE_PATH

SIGNUP_EMAIL_KEY = "signup_email"
CHANGE_ACCOUNT_KEY = "change_account"
VERIFICATION_NOTICE_KEY = "verification_notice"
ONBOARDING_STEP_KEY = "onboarding_step"

ONBOARDING_STEPS = ("welcome", "user-profile", "accountability", "calendar", "done")


class ClientStorage:
    """Get/set/clear of string-ish values. No expiry; a corrupt file reads as empty."""

    def __init__(self, path: Optional[str] = CLIENT_STATE_PATH):
        self.path = path
        self._memory: dict[str, Any] = {}

    def _load(self) -> dict[str, Any]:
        if self.path is None:
            return dict(self._memory)
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logging.warning("Could not read client state from %s; starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        if self.path is None:
            self._memory = data
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def clear(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    # Named accessors

    def signup_email(self) -> Optional[str]:
        return self.get(SIGNUP_EMAIL_KEY)

    def set_signup_email(self, email: str) -> None:
        self.set(SIGNUP_EMAIL_KEY, email)

    def clear_signup_email(self) -> None:
        self.clear(SIGNUP_EMAIL_KEY)

    def change_account(self) -> bool:
        return self.get(CHANGE_ACCOUNT_KEY) is True

    def set_change_account(self, value: bool) -> None:
        if value:
            self.set(CHANGE_ACCOUNT_KEY, True)
        else:
            self.clear(CHANGE_ACCOUNT_KEY)

    def set_verification_notice(self, text: str) -> None:
        self.set(VERIFICATION_NOTICE_KEY, text)

    def take_verification_notice(self) -> Optional[str]:
        """Read the notice once; it is cleared so it shows a single time."""
        notice = self.get(VERIFICATION_NOTICE_KEY)
        if notice is not None:
            self.clear(VERIFICATION_NOTICE_KEY)
        return notice

    def onboarding_step(self) -> Optional[str]:
        """Stored step, or None when missing or unrecognized."""
        step = self.get(ONBOARDING_STEP_KEY)
        return step if step in ONBOARDING_STEPS else None

    def set_onboarding_step(self, step: str) -> None:
        if step not in ONBOARDING_STEPS:
            raise ValueError(f"Unknown onboarding step: {step}")
        self.set(ONBOARDING_STEP_KEY, step)

    def clear_onboarding_step(self) -> None:
        self.clear(ONBOARDING_STEP_KEY)
