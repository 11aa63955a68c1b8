"""
Closed error taxonomy for the authentication workflow.

Every failure the workflow can report is one of the classes below. Callers
branch on the class (or its ``kind``), never on the message text; the
message is display detail only. ``field`` names the form control the
error belongs to, or is ``None`` for page-level errors.
"""

from typing import Any, Dict, Optional


class AuthError(Exception):
    kind = "server_error"
    status_code = 500
    default_message = "An unexpected error occurred."
    default_field: Optional[str] = None

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field if field is not None else self.default_field
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.kind,
            "field": self.field,
            "message": self.message,
        }


class ValidationError(AuthError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid input."
    default_field = "all"


class Conflict(AuthError):
    kind = "conflict"
    status_code = 400
    default_message = "User with this email already exists."
    default_field = "email"


class InvalidCredentials(AuthError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password. Please check your credentials and try again."
    default_field = "password"


class EmailNotConfirmed(AuthError):
    kind = "email_not_confirmed"
    status_code = 401
    default_message = "Please confirm your email address before logging in."
    default_field = "email"


class TooManyAttempts(AuthError):
    kind = "too_many_attempts"
    status_code = 429
    default_message = "Too many login attempts. Please try again later."
    default_field = "all"


class InvalidState(AuthError):
    kind = "invalid_state"
    status_code = 400
    default_message = "This action is not available for the current session."


class InvalidTransition(AuthError):
    kind = "invalid_transition"
    status_code = 400
    default_message = "Role has already been assigned."


class NotFound(AuthError):
    kind = "not_found"
    status_code = 404
    default_message = "User not found."


class SessionInvalid(AuthError):
    kind = "session_invalid"
    status_code = 401
    default_message = "Invalid session."


class SessionExpired(AuthError):
    kind = "session_expired"
    status_code = 401
    default_message = "Session expired. Please sign in again."


class ServerError(AuthError):
    pass


class AccessDenied(AuthError):
    """The session is valid but the route belongs to another role."""
    kind = "forbidden"
    status_code = 403
    default_message = "You do not have access to this page."

    def __init__(self, redirect_to: str, message: Optional[str] = None):
        self.redirect_to = redirect_to
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["redirectTo"] = self.redirect_to
        return body
