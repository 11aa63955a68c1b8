from datetime import datetime, timezone
from unittest.mock import MagicMock, call

import pytest
from postgrest.exceptions import APIError
from supabase import AuthApiError

from coachgate.config import settings
from coachgate.core.errors import (
    Conflict, EmailNotConfirmed, InvalidCredentials, InvalidTransition, ServerError, TooManyAttempts
)
from coachgate.database.supabase_client import SupabaseClient
from coachgate.modules.accounts.schemas import Account, Role
from coachgate.modules.accounts.store import SupabaseAccountStore
from coachgate.modules.credentials.service import SupabaseCredentialStore


def user_row(role="pending"):
    return {
        "id": "acc-1",
        "email": "alice@example.com",
        "name": "Alice",
        "role": role,
        "registration_method": "email",
        "created_at": "2026-01-01T12:00:00+00:00",
        "last_login": None,
    }


def pending_account():
    return Account(
        id="acc-1",
        email="alice@example.com",
        name="Alice",
        created_at=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def tables():
    return {"users": MagicMock(), "trainers": MagicMock(), "clients": MagicMock()}


@pytest.fixture
def supabase(tables):
    client = MagicMock()
    client.table.side_effect = lambda name: tables[name]
    return client


@pytest.fixture
def store(supabase):
    return SupabaseAccountStore(supabase)


def select_returns(table, rows):
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=rows)


def update_returns(table, rows):
    table.update.return_value.eq.return_value.eq.return_value.execute.return_value = MagicMock(data=rows)


def test_insert_unique_violation_is_conflict(store, tables):
    tables["users"].insert.return_value.execute.side_effect = APIError(
        {"code": "23505", "message": "duplicate key value violates unique constraint"}
    )
    with pytest.raises(Conflict):
        store.insert(pending_account())


def test_insert_other_database_error_is_server_error(store, tables):
    tables["users"].insert.return_value.execute.side_effect = APIError(
        {"code": "42501", "message": "permission denied"}
    )
    with pytest.raises(ServerError):
        store.insert(pending_account())


def test_insert_or_get_rereads_existing_row_after_conflict(store, tables):
    tables["users"].insert.return_value.execute.side_effect = APIError({"code": "23505", "message": "dup"})
    select_returns(tables["users"], [user_row(role="client")])

    account, created = store.insert_or_get(pending_account())

    assert created is False
    assert account.id == "acc-1"
    assert account.role == Role.CLIENT


def test_insert_or_get_creates_new_row(store, tables):
    tables["users"].insert.return_value.execute.return_value = MagicMock(data=[user_row()])
    account, created = store.insert_or_get(pending_account())
    assert created is True
    assert account.role == Role.PENDING


def test_assign_role_updates_only_pending_row_then_creates_profile(store, tables):
    select_returns(tables["users"], [user_row()])
    update_returns(tables["users"], [user_row(role="trainer")])

    account = store.assign_role("acc-1", Role.TRAINER)

    assert account.role == Role.TRAINER
    tables["users"].update.assert_called_once_with({"role": "trainer"})
    tables["users"].update.return_value.eq.return_value.eq.assert_called_once_with("role", "pending")
    tables["trainers"].insert.assert_called_once_with({"user_id": "acc-1"})


def test_assign_role_lost_race_is_invalid_transition(store, tables):
    select_returns(tables["users"], [user_row()])
    update_returns(tables["users"], [])

    with pytest.raises(InvalidTransition):
        store.assign_role("acc-1", Role.TRAINER)
    tables["trainers"].insert.assert_not_called()


def test_assign_role_reverts_role_when_profile_insert_fails(store, tables):
    select_returns(tables["users"], [user_row()])
    update_returns(tables["users"], [user_row(role="trainer")])
    tables["trainers"].insert.return_value.execute.side_effect = APIError({"code": "08006", "message": "gone"})

    with pytest.raises(ServerError):
        store.assign_role("acc-1", Role.TRAINER)

    assert tables["users"].update.call_args_list == [call({"role": "trainer"}), call({"role": "pending"})]
    assert tables["users"].update.return_value.eq.return_value.eq.call_args_list == [
        call("role", "pending"),
        call("role", "trainer"),
    ]


def test_assign_role_on_non_pending_account_is_invalid_transition(store, tables):
    select_returns(tables["users"], [user_row(role="client")])
    select_returns(tables["trainers"], [])

    with pytest.raises(InvalidTransition):
        store.assign_role("acc-1", Role.TRAINER)
    tables["users"].update.assert_not_called()


def sign_in_error(status, code):
    return AuthApiError("sign-in failed", status, code)


@pytest.mark.parametrize("status, code, expected", [
    (400, "email_not_confirmed", EmailNotConfirmed),
    (429, "over_request_rate_limit", TooManyAttempts),
    (429, None, TooManyAttempts),
    (400, "invalid_credentials", InvalidCredentials),
    (401, None, InvalidCredentials),
    (500, "unexpected_failure", ServerError),
])
def test_sign_in_errors_map_to_typed_errors(status, code, expected):
    sign_in_client = MagicMock()
    sign_in_client.auth.sign_in_with_password.side_effect = sign_in_error(status, code)
    credentials = SupabaseCredentialStore(MagicMock(), MagicMock(), lambda: sign_in_client)

    with pytest.raises(expected):
        credentials.verify_password("alice@example.com", "Password1!")


def test_password_sign_in_uses_a_fresh_client_per_call():
    shared = MagicMock()
    factory = MagicMock()
    factory.return_value.auth.sign_in_with_password.return_value = MagicMock(
        user=MagicMock(id="acc-1", email="Alice@Example.com", user_metadata={"full_name": "Alice"}),
        session=MagicMock(),
    )
    credentials = SupabaseCredentialStore(shared, MagicMock(), factory)

    for _ in range(2):
        identity = credentials.verify_password("alice@example.com", "Password1!")

    assert identity.email == "alice@example.com"
    assert identity.name == "Alice"
    assert factory.call_count == 2
    shared.auth.sign_in_with_password.assert_not_called()


def test_create_credential_existing_email_is_conflict():
    service = MagicMock()
    service.auth.admin.create_user.side_effect = AuthApiError("exists", 422, "email_exists")
    credentials = SupabaseCredentialStore(MagicMock(), service)
    with pytest.raises(Conflict):
        credentials.create_credential("alice@example.com", "Password1!", "Alice")


def test_service_client_requires_service_role_key(monkeypatch):
    monkeypatch.setattr(settings, "supabase_service_role_key", None)
    monkeypatch.setattr(SupabaseClient, "_service_client", None)
    with pytest.raises(RuntimeError):
        SupabaseClient.get_service_client()
