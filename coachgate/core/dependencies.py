"""
Core dependencies for service wiring and route protection
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Cookie, Depends

from coachgate.config import settings
from coachgate.core.errors import AccessDenied, AuthError, SessionInvalid
from coachgate.database.supabase_client import create_sign_in_client, get_supabase, get_supabase_service
from coachgate.modules.accounts.schemas import Account, Role
from coachgate.modules.accounts.service import AccountRegistry
from coachgate.modules.accounts.store import AccountStore, InMemoryAccountStore, SupabaseAccountStore
from coachgate.modules.auth.service import AuthWorkflow
from coachgate.modules.credentials.service import (
    CredentialStore, InMemoryCredentialStore, SupabaseCredentialStore
)
from coachgate.modules.guard.service import check_access
from coachgate.modules.sessions.service import SessionManager
import logging

logger = logging.getLogger(__name__)


@lru_cache
def get_session_manager() -> SessionManager:
    return SessionManager(
        secret=settings.session_secret,
        issuer=settings.session_issuer,
        algorithm=settings.session_algorithm,
        access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
    )


@lru_cache
def get_credential_store() -> CredentialStore:
    if settings.auth_backend == "memory":
        logger.info("Using in-memory credential store")
        return InMemoryCredentialStore(
            max_attempts=settings.login_max_attempts,
            attempt_window_seconds=settings.login_attempt_window_seconds,
        )
    return SupabaseCredentialStore(get_supabase(), get_supabase_service(), create_sign_in_client)


@lru_cache
def get_account_store() -> AccountStore:
    if settings.auth_backend == "memory":
        logger.info("Using in-memory account store")
        return InMemoryAccountStore()
    return SupabaseAccountStore(get_supabase_service())


def get_account_registry(store: AccountStore = Depends(get_account_store)) -> AccountRegistry:
    return AccountRegistry(store)


def get_auth_workflow(
    credentials: CredentialStore = Depends(get_credential_store),
    registry: AccountRegistry = Depends(get_account_registry),
    sessions: SessionManager = Depends(get_session_manager)
) -> AuthWorkflow:
    return AuthWorkflow(
        credentials,
        registry,
        sessions,
        disposable_domains=settings.get_disposable_domains(),
        oauth_provider=settings.oauth_provider,
        oauth_redirect_url=settings.oauth_redirect_url,
    )


def get_access_token(access_token: Optional[str] = Cookie(None)) -> str:
    """Extract the access token from the session cookie"""
    if not access_token:
        raise SessionInvalid("No session found")
    return access_token


def get_current_account(
    access_token: str = Depends(get_access_token),
    workflow: AuthWorkflow = Depends(get_auth_workflow)
) -> Account:
    return workflow.verify_session(access_token)


def get_optional_account(
    access_token: Optional[str] = Cookie(None),
    workflow: AuthWorkflow = Depends(get_auth_workflow)
) -> Optional[Account]:
    """Resolve the session if there is a usable one; never raises for a bad session."""
    if not access_token:
        return None
    try:
        return workflow.verify_session(access_token)
    except AuthError as e:
        logger.debug(f"Ignoring unusable session: {e}")
        return None


def require_role(required_role: Role):
    """Factory function to create a role check dependency"""
    def check_role(account: Account = Depends(get_current_account)) -> Account:
        decision = check_access(True, account.role, required_role)
        if not decision.allow:
            raise AccessDenied(decision.redirect_to)
        return account
    return check_role
