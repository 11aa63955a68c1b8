"""
Credential store adapters.

The credential store keeps email/password pairs, checks login attempts and
vouches for OAuth provider tokens. It never sees Account rows or session
tokens; the workflow composes it with the registry and session manager.
"""

import logging
import secrets
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import bcrypt
from supabase import AuthApiError, Client

from coachgate.core.errors import (
    Conflict, EmailNotConfirmed, InvalidCredentials, ServerError, TooManyAttempts
)
from coachgate.modules.credentials.schemas import VerifiedIdentity

logger = logging.getLogger(__name__)


def display_name(metadata: Optional[Dict[str, Any]], email: str) -> str:
    metadata = metadata or {}
    return metadata.get("full_name") or metadata.get("name") or email.split("@")[0]


class CredentialStore(ABC):
    @abstractmethod
    def create_credential(self, email: str, password: str, name: str) -> str:
        """Store a new credential and return its id. Conflict if the email exists."""

    @abstractmethod
    def verify_password(self, email: str, password: str) -> VerifiedIdentity:
        ...

    @abstractmethod
    def verify_oauth_token(self, token: str) -> VerifiedIdentity:
        ...

    @abstractmethod
    def authorize_url(self, provider: str, redirect_to: str) -> str:
        ...


@dataclass
class _Credential:
    id: str
    email: str
    name: str
    password_hash: bytes
    confirmed: bool


class InMemoryCredentialStore(CredentialStore):
    """bcrypt-backed store with a per-email failed-attempt window."""

    AUTHORIZE_ENDPOINT = "https://auth.coachgate.local/authorize"

    def __init__(
        self,
        max_attempts: int = 3,
        attempt_window_seconds: float = 300,
        require_email_confirmation: bool = False,
        clock: Callable[[], float] = time.monotonic,
        hash_rounds: int = 12
    ):
        self.max_attempts = max_attempts
        self.hash_rounds = hash_rounds
        self.attempt_window_seconds = attempt_window_seconds
        self.require_email_confirmation = require_email_confirmation
        self.clock = clock
        self._lock = threading.Lock()
        self._credentials: Dict[str, _Credential] = {}
        self._failures: Dict[str, List[float]] = {}
        self._oauth_tokens: Dict[str, VerifiedIdentity] = {}
        self._oauth_ids: Dict[str, str] = {}

    def create_credential(self, email: str, password: str, name: str) -> str:
        email = email.lower()
        password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.hash_rounds))
        with self._lock:
            if email in self._credentials:
                raise Conflict()
            credential_id = self._oauth_ids.get(email) or str(uuid.uuid4())
            self._credentials[email] = _Credential(
                id=credential_id,
                email=email,
                name=name,
                password_hash=password_hash,
                confirmed=not self.require_email_confirmation,
            )
        return credential_id

    def confirm_email(self, email: str) -> None:
        with self._lock:
            credential = self._credentials.get(email.lower())
            if credential is not None:
                credential.confirmed = True

    def verify_password(self, email: str, password: str) -> VerifiedIdentity:
        email = email.lower()
        now = self.clock()
        with self._lock:
            recent = [t for t in self._failures.get(email, []) if now - t < self.attempt_window_seconds]
            if len(recent) >= self.max_attempts:
                self._failures[email] = recent
                raise TooManyAttempts()
            # Counted as a failure until the password checks out.
            recent.append(now)
            self._failures[email] = recent
            credential = self._credentials.get(email)

        if credential is None or not bcrypt.checkpw(password.encode(), credential.password_hash):
            raise InvalidCredentials()
        if not credential.confirmed:
            self._release_attempt(email, now)
            raise EmailNotConfirmed()

        with self._lock:
            self._failures.pop(email, None)
        return VerifiedIdentity(id=credential.id, email=credential.email, name=credential.name)

    def _release_attempt(self, email: str, at: float) -> None:
        with self._lock:
            attempts = self._failures.get(email)
            if attempts and at in attempts:
                attempts.remove(at)

    def issue_oauth_token(self, email: str, name: Optional[str] = None) -> str:
        """Mint a provider token for ``email``, as the provider would after consent."""
        email = email.lower()
        with self._lock:
            credential = self._credentials.get(email)
            identity_id = credential.id if credential else self._oauth_ids.setdefault(email, str(uuid.uuid4()))
            token = secrets.token_urlsafe(32)
            self._oauth_tokens[token] = VerifiedIdentity(
                id=identity_id,
                email=email,
                name=display_name({"full_name": name}, email),
            )
        return token

    def verify_oauth_token(self, token: str) -> VerifiedIdentity:
        with self._lock:
            identity = self._oauth_tokens.get(token)
        if identity is None:
            raise InvalidCredentials("Could not verify Google authentication.", field="all")
        return identity

    def authorize_url(self, provider: str, redirect_to: str) -> str:
        return f"{self.AUTHORIZE_ENDPOINT}?{urlencode({'provider': provider, 'redirect_to': redirect_to})}"


class SupabaseCredentialStore(CredentialStore):
    """Supabase Auth as the credential store."""

    def __init__(
        self,
        supabase: Client,
        service_client: Optional[Client] = None,
        sign_in_client_factory: Optional[Callable[[], Client]] = None
    ):
        self.supabase = supabase
        self.service_client = service_client or supabase
        self.sign_in_client_factory = sign_in_client_factory or (lambda: supabase)

    def create_credential(self, email: str, password: str, name: str) -> str:
        try:
            response = self.service_client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"full_name": name},
            })
        except AuthApiError as e:
            if e.code in ("email_exists", "user_already_exists"):
                raise Conflict()
            logger.error(f"Credential creation failed: {e}")
            raise ServerError("Registration failed. Please try again.")

        if not response.user:
            raise ServerError("Registration failed. Please try again.")
        return response.user.id

    def verify_password(self, email: str, password: str) -> VerifiedIdentity:
        try:
            response = self.sign_in_client_factory().auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except AuthApiError as e:
            raise self._map_sign_in_error(e)

        if not response.user or not response.session:
            raise InvalidCredentials()
        user = response.user
        return VerifiedIdentity(
            id=user.id,
            email=(user.email or email).lower(),
            name=display_name(user.user_metadata, user.email or email),
        )

    def verify_oauth_token(self, token: str) -> VerifiedIdentity:
        try:
            response = self.supabase.auth.get_user(jwt=token)
        except AuthApiError as e:
            logger.warning(f"OAuth token rejected: {e.code}")
            raise InvalidCredentials("Could not verify Google authentication.", field="all")

        if not response or not response.user or not response.user.email:
            raise InvalidCredentials("Could not verify Google authentication.", field="all")
        user = response.user
        return VerifiedIdentity(
            id=user.id,
            email=user.email.lower(),
            name=display_name(user.user_metadata, user.email),
        )

    def authorize_url(self, provider: str, redirect_to: str) -> str:
        try:
            response = self.supabase.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {"redirect_to": redirect_to},
            })
        except AuthApiError as e:
            logger.error(f"{provider} OAuth error: {e}")
            raise ServerError(f"{provider.capitalize()} OAuth failed")
        return response.url

    @staticmethod
    def _map_sign_in_error(e: AuthApiError) -> Exception:
        if e.code == "email_not_confirmed":
            return EmailNotConfirmed()
        if e.status == 429 or e.code in ("over_request_rate_limit", "over_email_send_rate_limit"):
            return TooManyAttempts()
        if e.code == "invalid_credentials" or e.status in (400, 401):
            return InvalidCredentials()
        logger.error(f"Sign-in failed: {e}")
        return ServerError("Unable to log in. Please try again.")
