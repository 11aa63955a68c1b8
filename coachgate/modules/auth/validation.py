"""
Local input checks for the registration and login forms.

These run before any call to the credential store. Each failure is a
ValidationError tagged with the form field it belongs to.
"""

import re
from typing import Iterable, Optional, Tuple

from coachgate.core.errors import ValidationError

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PASSWORD_PATTERN = re.compile(
    r"""(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]).{8,}"""
)
MIN_PASSWORD_LENGTH = 8
MAX_INPUT_LENGTH = 255

EMAIL_MESSAGE = "Please enter a valid email address."
PASSWORD_MESSAGE = (
    "Password must be at least 8 characters long and contain uppercase letter, "
    "lowercase letter, number, and special character."
)


def sanitize(value: Optional[str]) -> str:
    """Trim, drop angle brackets and cap the length. Not applied to passwords."""
    return (value or "").strip().replace("<", "").replace(">", "")[:MAX_INPUT_LENGTH]


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


def is_strong_password(password: str) -> bool:
    return PASSWORD_PATTERN.fullmatch(password) is not None


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower()


def validate_registration(
    email: Optional[str],
    name: Optional[str],
    password: Optional[str],
    password_repeat: Optional[str],
    disposable_domains: Iterable[str] = ()
) -> Tuple[str, str]:
    """Return the sanitized (email, name) or raise the first failing check."""
    email = sanitize(email)
    name = sanitize(name)
    if not email or not name or not password or not password_repeat:
        raise ValidationError(
            "All fields are required. Please fill in all required information.", field="all"
        )
    if not is_valid_email(email):
        raise ValidationError(EMAIL_MESSAGE, field="email")
    if email_domain(email) in {d.lower() for d in disposable_domains}:
        raise ValidationError("Please use a permanent email address.", field="email")
    if not is_strong_password(password):
        raise ValidationError(PASSWORD_MESSAGE, field="password")
    if password != password_repeat:
        raise ValidationError(
            "Password confirmation does not match. Please verify your password.",
            field="passwordRepeat",
        )
    return email.lower(), name


def validate_login(email: Optional[str], password: Optional[str]) -> str:
    """Return the sanitized email or raise the first failing check."""
    email = sanitize(email)
    if not email or not password:
        raise ValidationError("Email and password are required.", field="all")
    if not is_valid_email(email):
        raise ValidationError(EMAIL_MESSAGE, field="email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 8 characters long.", field="password")
    return email.lower()
