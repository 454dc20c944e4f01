# ABOUTME: Account input validation shared by the API and the client (email, password length, display name).
# ABOUTME: Raises ValueError with a user-facing message; clients check before making any request.

from core.config import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH, MIN_PASSWORD_LENGTH


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> None:
    """Raise ValueError if the email is empty, lacks an @, or is too long."""
    e = normalize_email(email)
    if not e or "@" not in e:
        raise ValueError("A valid email address is required.")
    if len(e) > MAX_EMAIL_LENGTH:
        raise ValueError(f"Email must be at most {MAX_EMAIL_LENGTH} characters")


def validate_password_length(password: str) -> None:
    """Raise ValueError if password is shorter than MIN_PASSWORD_LENGTH."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def validate_name(name: str) -> None:
    """Raise ValueError if the display name is empty or too long."""
    n = (name or "").strip()
    if not n:
        raise ValueError("Please enter your name to get started.")
    if len(n) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_NAME_LENGTH} characters")
