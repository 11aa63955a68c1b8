"""
Account persistence backends.

Both stores expose the same primitives. Each primitive is a single
check-and-write: ``insert`` fails with ``Conflict`` on a duplicate id or
email, ``insert_or_get`` returns the existing row instead, and
``assign_role`` updates the role and creates the matching profile as one
unit (a failed profile insert reverts the role).
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client

from coachgate.core.errors import Conflict, InvalidTransition, NotFound, ServerError
from coachgate.modules.accounts.schemas import Account, Profile, PROFILE_TYPES, Role

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountStore(ABC):
    @abstractmethod
    def get(self, account_id: str) -> Optional[Account]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Account]:
        ...

    @abstractmethod
    def insert(self, account: Account) -> Account:
        """Insert a new account; raise Conflict if the id or email is taken."""

    @abstractmethod
    def insert_or_get(self, account: Account) -> Tuple[Account, bool]:
        """Insert ``account`` or return the row already holding its id or email.

        The boolean is True when this call created the row.
        """

    @abstractmethod
    def assign_role(self, account_id: str, role: Role) -> Account:
        ...

    @abstractmethod
    def get_profile(self, account_id: str, role: Role) -> Optional[Profile]:
        ...

    @abstractmethod
    def touch_login(self, account_id: str, at: datetime) -> None:
        ...


class InMemoryAccountStore(AccountStore):
    """Process-local store; every read-modify-write runs under one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._accounts: Dict[str, Account] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._profiles: Dict[Role, Dict[str, Profile]] = {role: {} for role in PROFILE_TYPES}

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return account.model_copy() if account else None

    def get_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            account_id = self._ids_by_email.get(email.lower())
            return self._accounts[account_id].model_copy() if account_id else None

    def insert(self, account: Account) -> Account:
        with self._lock:
            if self._find_locked(account) is not None:
                raise Conflict()
            return self._insert_locked(account)

    def insert_or_get(self, account: Account) -> Tuple[Account, bool]:
        with self._lock:
            existing = self._find_locked(account)
            if existing is not None:
                return existing.model_copy(), False
            return self._insert_locked(account), True

    def assign_role(self, account_id: str, role: Role) -> Account:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise NotFound()
            profiles = self._profiles.get(role)

            if account.role == role and profiles is not None and account_id not in profiles:
                # Role already recorded but its profile is missing: recreate it.
                self._insert_profile(account_id, role)
                return account.model_copy()
            if account.role != Role.PENDING:
                raise InvalidTransition()

            account.role = role
            if profiles is not None:
                try:
                    self._insert_profile(account_id, role)
                except Exception as e:
                    account.role = Role.PENDING
                    logger.error(f"Profile creation failed for {account_id}, role reverted: {e}")
                    raise ServerError(f"Failed to create {role.value} profile")
            return account.model_copy()

    def get_profile(self, account_id: str, role: Role) -> Optional[Profile]:
        with self._lock:
            profile = self._profiles.get(role, {}).get(account_id)
            return profile.model_copy() if profile else None

    def touch_login(self, account_id: str, at: datetime) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise NotFound()
            account.last_login_at = at

    def _find_locked(self, account: Account) -> Optional[Account]:
        existing = self._accounts.get(account.id)
        if existing is None:
            existing_id = self._ids_by_email.get(account.email.lower())
            existing = self._accounts.get(existing_id) if existing_id else None
        return existing

    def _insert_locked(self, account: Account) -> Account:
        stored = account.model_copy(update={"email": account.email.lower()})
        self._accounts[stored.id] = stored
        self._ids_by_email[stored.email] = stored.id
        return stored.model_copy()

    def _insert_profile(self, account_id: str, role: Role) -> Profile:
        profiles = self._profiles[role]
        if account_id in profiles:
            raise Conflict(f"{role.value} profile already exists")
        profile = PROFILE_TYPES[role](id=str(uuid.uuid4()), account_id=account_id, created_at=utc_now())
        profiles[account_id] = profile
        return profile


class SupabaseAccountStore(AccountStore):
    """Account rows in the ``users`` table with ``trainers``/``clients`` satellites."""

    USERS_TABLE = "users"
    PROFILE_TABLES = {Role.TRAINER: "trainers", Role.CLIENT: "clients"}
    COLUMNS = "id, email, name, role, registration_method, created_at, last_login"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get(self, account_id: str) -> Optional[Account]:
        result = self.supabase.table(self.USERS_TABLE)\
            .select(self.COLUMNS)\
            .eq("id", account_id)\
            .limit(1)\
            .execute()
        return self._to_account(result.data[0]) if result.data else None

    def get_by_email(self, email: str) -> Optional[Account]:
        result = self.supabase.table(self.USERS_TABLE)\
            .select(self.COLUMNS)\
            .eq("email", email.lower())\
            .limit(1)\
            .execute()
        return self._to_account(result.data[0]) if result.data else None

    def insert(self, account: Account) -> Account:
        try:
            result = self.supabase.table(self.USERS_TABLE).insert({
                "id": account.id,
                "email": account.email.lower(),
                "name": account.name,
                "role": account.role.value,
                "registration_method": account.registration_method.value,
                "created_at": account.created_at.isoformat(),
            }).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise Conflict()
            raise ServerError(f"Failed to create user record: {e.message}")

        if not result.data:
            raise ServerError("Failed to create user record")
        return self._to_account(result.data[0])

    def insert_or_get(self, account: Account) -> Tuple[Account, bool]:
        try:
            return self.insert(account), True
        except Conflict:
            existing = self.get(account.id) or self.get_by_email(account.email)
            if existing is None:
                raise
            return existing, False

    def assign_role(self, account_id: str, role: Role) -> Account:
        account = self.get(account_id)
        if account is None:
            raise NotFound()
        table = self.PROFILE_TABLES.get(role)

        if account.role == role and table and self.get_profile(account_id, role) is None:
            try:
                self._insert_profile(table, account_id)
            except Conflict:
                raise InvalidTransition()
            return account
        if account.role != Role.PENDING:
            raise InvalidTransition()

        # Conditional update: only one concurrent caller can move the row off 'pending'.
        result = self.supabase.table(self.USERS_TABLE)\
            .update({"role": role.value})\
            .eq("id", account_id)\
            .eq("role", Role.PENDING.value)\
            .execute()
        if not result.data:
            raise InvalidTransition()

        if table:
            try:
                self._insert_profile(table, account_id)
            except Exception as e:
                logger.error(f"Profile creation failed for {account_id}, reverting role: {e}")
                self.supabase.table(self.USERS_TABLE)\
                    .update({"role": Role.PENDING.value})\
                    .eq("id", account_id)\
                    .eq("role", role.value)\
                    .execute()
                raise ServerError(f"Failed to create {role.value} profile")
        return self._to_account(result.data[0])

    def get_profile(self, account_id: str, role: Role) -> Optional[Profile]:
        table = self.PROFILE_TABLES.get(role)
        if table is None:
            return None
        result = self.supabase.table(table)\
            .select("id, user_id, created_at")\
            .eq("user_id", account_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        row = result.data[0]
        return PROFILE_TYPES[role](id=str(row["id"]), account_id=row["user_id"], created_at=row["created_at"])

    def touch_login(self, account_id: str, at: datetime) -> None:
        self.supabase.table(self.USERS_TABLE)\
            .update({"last_login": at.isoformat()})\
            .eq("id", account_id)\
            .execute()

    def _insert_profile(self, table: str, account_id: str) -> None:
        try:
            self.supabase.table(table).insert({"user_id": account_id}).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise Conflict(f"Profile already exists in {table}")
            raise

    @staticmethod
    def _to_account(row: Dict[str, Any]) -> Account:
        return Account(
            id=str(row["id"]),
            email=row["email"],
            name=row.get("name") or "",
            role=row.get("role") or Role.PENDING,
            registration_method=row.get("registration_method") or "email",
            created_at=row.get("created_at") or utc_now(),
            last_login_at=row.get("last_login"),
        )
