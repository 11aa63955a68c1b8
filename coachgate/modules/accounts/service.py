import logging
from typing import Callable, Optional
from datetime import datetime

from coachgate.core.errors import NotFound, ValidationError
from coachgate.modules.accounts.schemas import (
    Account, Profile, PROFILE_TYPES, RegistrationMethod, Role
)
from coachgate.modules.accounts.store import AccountStore, utc_now

logger = logging.getLogger(__name__)


class AccountRegistry:
    """Owns Account rows and their role-specific profiles."""

    def __init__(self, store: AccountStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utc_now

    def find_by_email(self, email: str) -> Account:
        account = self.store.get_by_email(email.strip().lower())
        if account is None:
            raise NotFound()
        return account

    def find_by_id(self, account_id: str) -> Account:
        account = self.store.get(account_id)
        if account is None:
            raise NotFound()
        return account

    def create_pending(
        self,
        account_id: str,
        email: str,
        name: str,
        registration_method: RegistrationMethod
    ) -> Account:
        """Create a new pending account; Conflict if the id or email already exists."""
        account = self.store.insert(self._new_pending(account_id, email, name, registration_method))
        logger.info(f"Created pending account {account.id} ({registration_method.value})")
        return account

    def ensure_pending(
        self,
        account_id: str,
        email: str,
        name: str,
        registration_method: RegistrationMethod
    ) -> Account:
        """Return the account for this identity, creating it as pending if absent."""
        account, created = self.store.insert_or_get(
            self._new_pending(account_id, email, name, registration_method)
        )
        if created:
            logger.info(f"Created pending account {account.id} ({registration_method.value})")
        else:
            logger.info(f"Reusing existing account {account.id}")
        return account

    def assign_role(self, account_id: str, role: Role) -> Account:
        if role == Role.PENDING:
            raise ValidationError("Role cannot be reset to pending", field="role")
        account = self.store.assign_role(account_id, role)
        logger.info(f"Assigned role {role.value} to account {account_id}")
        return account

    def get_profile(self, account_id: str, role: Role) -> Profile:
        profile = self.store.get_profile(account_id, role)
        if profile is None:
            raise NotFound(f"{role.value.capitalize()} profile not found")
        return profile

    def needs_role_selection(self, account: Account) -> bool:
        if account.role == Role.PENDING:
            return True
        if account.role in PROFILE_TYPES:
            # A role without its profile row is left over from a failed assignment.
            if self.store.get_profile(account.id, account.role) is None:
                logger.warning(f"{account.role.value} profile missing for account {account.id}")
                return True
        return False

    def touch_login(self, account_id: str) -> Optional[datetime]:
        """Record a login timestamp and return it. Failures are logged and return None."""
        at = self.clock()
        try:
            self.store.touch_login(account_id, at)
        except Exception as e:
            logger.warning(f"Could not update last login for {account_id}: {e}")
            return None
        return at

    def _new_pending(
        self,
        account_id: str,
        email: str,
        name: str,
        registration_method: RegistrationMethod
    ) -> Account:
        return Account(
            id=account_id,
            email=email.strip().lower(),
            name=name,
            role=Role.PENDING,
            registration_method=registration_method,
            created_at=self.clock(),
        )
