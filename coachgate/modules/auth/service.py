import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from coachgate.core.errors import InvalidState, NotFound, ValidationError, Conflict
from coachgate.modules.accounts.schemas import Account, RegistrationMethod, Role, SELECTABLE_ROLES
from coachgate.modules.accounts.service import AccountRegistry
from coachgate.modules.auth.validation import validate_login, validate_registration
from coachgate.modules.credentials.schemas import VerifiedIdentity
from coachgate.modules.credentials.service import CredentialStore
from coachgate.modules.guard.service import landing_path
from coachgate.modules.sessions.schemas import Session
from coachgate.modules.sessions.service import SessionManager

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED_PENDING_ROLE = "authenticated_pending_role"
    AUTHENTICATED_WITH_ROLE = "authenticated_with_role"


@dataclass
class AuthOutcome:
    account: Account
    session: Session
    needs_role_selection: bool

    @property
    def state(self) -> AuthState:
        if self.needs_role_selection:
            return AuthState.AUTHENTICATED_PENDING_ROLE
        return AuthState.AUTHENTICATED_WITH_ROLE

    @property
    def redirect_to(self) -> str:
        return landing_path(self.account.role, self.needs_role_selection)


@dataclass
class RegistrationResult:
    user_id: str
    message: str = "Account created successfully. Welcome aboard!"


class AuthWorkflow:
    """Sequences credential checks, registry reconciliation and session issuance."""

    def __init__(
        self,
        credentials: CredentialStore,
        registry: AccountRegistry,
        sessions: SessionManager,
        disposable_domains: Iterable[str] = (),
        oauth_provider: str = "google",
        oauth_redirect_url: str = "http://localhost:5173/auth/callback"
    ):
        self.credentials = credentials
        self.registry = registry
        self.sessions = sessions
        self.disposable_domains = tuple(disposable_domains)
        self.oauth_provider = oauth_provider
        self.oauth_redirect_url = oauth_redirect_url

    def register(self, email: str, name: str, password: str, password_repeat: str) -> RegistrationResult:
        """Create a credential and a pending account. No session is issued."""
        email, name = validate_registration(
            email, name, password, password_repeat, self.disposable_domains
        )
        if self._email_registered(email):
            raise Conflict()

        credential_id = self.credentials.create_credential(email, password, name)
        account = self.registry.create_pending(credential_id, email, name, RegistrationMethod.EMAIL)
        logger.info(f"Registered account {account.id}")
        return RegistrationResult(user_id=account.id)

    def login(self, email: str, password: str) -> AuthOutcome:
        email = validate_login(email, password)
        identity = self.credentials.verify_password(email, password)
        outcome = self._establish(identity, RegistrationMethod.EMAIL)
        logger.info(f"Password login for account {outcome.account.id} ({outcome.state.value})")
        return outcome

    def oauth_authorize_url(self) -> str:
        return self.credentials.authorize_url(self.oauth_provider, self.oauth_redirect_url)

    def oauth_callback(self, provider_token: str) -> AuthOutcome:
        """Exchange a provider token for a session.

        The provider may deliver the same sign-in more than once, so the
        account is reconciled by insert-or-fetch rather than created.
        """
        if not provider_token:
            raise ValidationError("Google access token is required.", field="all")
        identity = self.credentials.verify_oauth_token(provider_token)
        outcome = self._establish(identity, RegistrationMethod.GOOGLE)
        logger.info(f"OAuth login for account {outcome.account.id} ({outcome.state.value})")
        return outcome

    def select_role(self, account_id: str, role: str) -> Account:
        try:
            selected = Role(role)
        except ValueError:
            selected = None
        if selected not in SELECTABLE_ROLES:
            raise ValidationError("Role must be either 'client' or 'trainer'", field="role")

        account = self.registry.find_by_id(account_id)
        if not self.registry.needs_role_selection(account):
            raise InvalidState("Role has already been selected.")
        return self.registry.assign_role(account_id, selected)

    def verify_session(self, access_token: str) -> Account:
        account_id = self.sessions.validate(access_token)
        return self.registry.find_by_id(account_id)

    def refresh_session(self, refresh_token: str) -> AuthOutcome:
        session = self.sessions.refresh(refresh_token)
        account = self.registry.find_by_id(session.account_id)
        return AuthOutcome(
            account=account,
            session=session,
            needs_role_selection=self.registry.needs_role_selection(account),
        )

    def logout(self, refresh_token: Optional[str]) -> AuthState:
        try:
            self.sessions.revoke(refresh_token)
        except Exception as e:
            logger.warning(f"Session revoke failed, clearing local session anyway: {e}")
        return AuthState.UNAUTHENTICATED

    def _establish(self, identity: VerifiedIdentity, method: RegistrationMethod) -> AuthOutcome:
        account = self.registry.ensure_pending(identity.id, identity.email, identity.name, method)
        # Inline so the outcome carries the new timestamp; a failed write never fails the login.
        last_login_at = self.registry.touch_login(account.id)
        if last_login_at is not None:
            account = account.model_copy(update={"last_login_at": last_login_at})
        needs_role_selection = self.registry.needs_role_selection(account)
        return AuthOutcome(
            account=account,
            session=self.sessions.issue(account.id),
            needs_role_selection=needs_role_selection,
        )

    def _email_registered(self, email: str) -> bool:
        try:
            self.registry.find_by_email(email)
        except NotFound:
            return False
        return True
