# ABOUTME: Client routing: maps a path (carried in the `page` query param) to a screen or a redirect.
# ABOUTME: Also handles the one-time verification_status redirect after the user follows a confirmation link.

from dataclasses import dataclass
from typing import Callable, Optional

from core.schemas import VerificationStatus
from ui.client_storage import ClientStorage

LANDING_PATH = "/"
LOGIN_PATH = "/auth/login"
SIGNUP_PATH = "/auth/signup"
APP_PATH = "/app"
DASHBOARD_PATH = "/app/dashboard"
ONBOARD_PREFIX = "/app/onboard/"
ACCOUNT_VERIFICATION_PATH = "/app/onboard/account-verification"

VIEWS = ("dashboard", "plan", "measurements", "vision")
ONBOARDING_SCREENS = ("welcome", "user-profile", "accountability", "calendar")

VERIFIED_NOTICE = "Email confirmed. Please sign in to continue."


@dataclass
class Route:
    """What to render for a path. When redirect is set, the caller navigates there instead."""

    screen: str
    redirect: Optional[str] = None
    view: Optional[str] = None


def view_from_path(path: str) -> str:
    for view in VIEWS[1:]:
        if path.startswith(f"/app/{view}"):
            return view
    return "dashboard"


def path_from_view(view: str) -> str:
    return f"/app/{view}" if view in VIEWS else DASHBOARD_PATH


def onboarding_path_from_step(step: Optional[str]) -> str:
    """Path of an unfinished onboarding step; 'done' or unknown steps go to the dashboard."""
    if step in ONBOARDING_SCREENS:
        return f"{ONBOARD_PREFIX}{step}"
    return DASHBOARD_PATH


def resolve_route(
    path: str,
    *,
    signed_in: bool,
    auth_loading: bool = False,
    onboarding_step: Optional[str] = None,
    verification_status: Optional[str] = None,
) -> Route:
    if path == LANDING_PATH:
        return Route("landing")

    if path.startswith("/auth"):
        return Route("signup" if "signup" in path else "login")

    if not path.startswith(APP_PATH):
        return Route("loading", redirect=LANDING_PATH)

    # Reachable signed out: it is where unconfirmed users wait.
    if path == ACCOUNT_VERIFICATION_PATH:
        return Route("check_email")
    if auth_loading:
        return Route("loading")
    if not signed_in:
        return Route("loading", redirect=LOGIN_PATH)
    if path in (APP_PATH, APP_PATH + "/"):
        if verification_status:
            return Route("loading")
        return Route("loading", redirect=DASHBOARD_PATH)

    if path.startswith(ONBOARD_PREFIX):
        screen = path[len(ONBOARD_PREFIX):]
        if screen in ONBOARDING_SCREENS:
            return Route(screen)
        return Route("loading", redirect=f"{ONBOARD_PREFIX}welcome")

    if onboarding_step and onboarding_step != "done":
        return Route("loading", redirect=onboarding_path_from_step(onboarding_step))

    view = view_from_path(path)
    return Route("app", view=view)


def handle_verification_status(
    status: Optional[str],
    *,
    user: Optional[dict],
    storage: ClientStorage,
    sign_out: Callable[[], None],
) -> Optional[str]:
    """Apply the outcome of a confirmation link and return where to go next (None: not applicable)."""
    if status == VerificationStatus.FAILURE.value:
        return ACCOUNT_VERIFICATION_PATH

    if status == VerificationStatus.ALREADY_VERIFIED.value:
        if user is None:
            return LOGIN_PATH
        return onboarding_path_from_step(storage.onboarding_step() or "done")

    if status == VerificationStatus.SUCCESS.value:
        if user is None:
            storage.set_verification_notice(VERIFIED_NOTICE)
            return LOGIN_PATH
        stored_email = storage.signup_email()
        same_account = bool(stored_email) and (user.get("email") or "").lower() == stored_email.lower()
        if storage.change_account() or not same_account:
            storage.set_verification_notice(VERIFIED_NOTICE)
            storage.set_change_account(True)
            sign_out()
            return ACCOUNT_VERIFICATION_PATH
        storage.set_change_account(False)
        if storage.onboarding_step() is None:
            storage.set_onboarding_step("welcome")
        return f"{ONBOARD_PREFIX}welcome"

    return None
