import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from jose import JWTError, jwt

from coachgate.core.errors import SessionExpired, SessionInvalid
from coachgate.modules.sessions.schemas import Session

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class SessionManager:
    """
    Issues and validates signed session tokens.

    Validity is a function of signature, token type and expiry only; no
    server-side session history is kept.
    """

    def __init__(
        self,
        secret: str,
        issuer: str = "coachgate",
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.secret = secret
        self.issuer = issuer
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, account_id: str) -> Session:
        now = self.clock()
        access_expires = now + self.access_ttl
        refresh_expires = now + self.refresh_ttl
        return Session(
            account_id=account_id,
            access_token=self._encode(account_id, ACCESS, now, access_expires),
            refresh_token=self._encode(account_id, REFRESH, now, refresh_expires),
            issued_at=now,
            expires_at=access_expires,
            refresh_expires_at=refresh_expires,
        )

    def validate(self, access_token: str) -> str:
        """Return the account id behind ``access_token``.

        Raises SessionInvalid for a malformed, forged or wrong-type token and
        SessionExpired once the token is past its expiry.
        """
        return self._decode(access_token, ACCESS)["sub"]

    def refresh(self, refresh_token: str) -> Session:
        try:
            claims = self._decode(refresh_token, REFRESH)
        except SessionExpired:
            raise SessionInvalid("Refresh token expired. Please sign in again.")
        return self.issue(claims["sub"])

    def revoke(self, refresh_token: Optional[str]) -> None:
        """Log out. Idempotent; never raises."""
        if not refresh_token:
            return
        try:
            claims = jwt.get_unverified_claims(refresh_token)
        except JWTError:
            logger.info("Revoke called with an unreadable refresh token")
            return
        logger.info(f"Session revoked for account {claims.get('sub')}")

    def _encode(self, account_id: str, token_type: str, issued_at: datetime, expires_at: datetime) -> str:
        payload: Dict[str, Any] = {
            "sub": account_id,
            "typ": token_type,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str) -> Dict[str, Any]:
        if not token:
            raise SessionInvalid()
        try:
            # Expiry is checked below against the injectable clock.
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False},
            )
        except JWTError:
            raise SessionInvalid()

        if claims.get("typ") != token_type or not claims.get("sub"):
            raise SessionInvalid()
        exp = claims.get("exp")
        if not isinstance(exp, int) or self.clock().timestamp() >= exp:
            raise SessionExpired()
        return claims
