from fastapi import Response

from coachgate.config import settings
from coachgate.modules.sessions.schemas import Session

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def set_session_cookies(response: Response, session: Session) -> None:
    """Attach both session tokens as HttpOnly cookies; tokens never go in the body."""
    for key, value, max_age in (
        (ACCESS_COOKIE, session.access_token, settings.access_token_ttl_seconds),
        (REFRESH_COOKIE, session.refresh_token, settings.refresh_token_ttl_seconds),
    ):
        response.set_cookie(
            key=key,
            value=value,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


def clear_session_cookies(response: Response) -> None:
    for key in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            key=key,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )
