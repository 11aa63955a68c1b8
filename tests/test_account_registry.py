import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from coachgate.core.errors import Conflict, InvalidTransition, NotFound, ServerError, ValidationError
from coachgate.modules.accounts.schemas import RegistrationMethod, Role, TrainerProfile, ClientProfile


def create(registry, account_id="acc-1", email="alice@example.com", name="Alice"):
    return registry.create_pending(account_id, email, name, RegistrationMethod.EMAIL)


def test_create_pending_starts_in_pending_role(registry):
    account = create(registry, email="Alice@Example.com")
    assert account.role == Role.PENDING
    assert account.email == "alice@example.com"
    assert account.registration_method == RegistrationMethod.EMAIL
    assert account.last_login_at is None


def test_create_pending_rejects_duplicate_email_case_insensitively(registry):
    create(registry)
    with pytest.raises(Conflict):
        create(registry, account_id="acc-2", email="ALICE@example.com")


def test_create_pending_rejects_duplicate_id(registry):
    create(registry)
    with pytest.raises(Conflict):
        create(registry, email="other@example.com")


def test_find_by_email_and_id(registry):
    account = create(registry)
    assert registry.find_by_email("ALICE@example.com").id == account.id
    assert registry.find_by_id("acc-1").email == "alice@example.com"
    with pytest.raises(NotFound):
        registry.find_by_id("missing")
    with pytest.raises(NotFound):
        registry.find_by_email("nobody@example.com")


def test_ensure_pending_reuses_existing_row(registry):
    first = create(registry)
    again = registry.ensure_pending("acc-1", "alice@example.com", "Alice", RegistrationMethod.EMAIL)
    by_email = registry.ensure_pending("other-id", "alice@example.com", "Alice", RegistrationMethod.GOOGLE)
    assert again.id == first.id
    assert by_email.id == first.id
    assert by_email.registration_method == RegistrationMethod.EMAIL


def test_assign_role_creates_matching_profile(registry):
    create(registry)
    account = registry.assign_role("acc-1", Role.TRAINER)
    assert account.role == Role.TRAINER
    assert isinstance(registry.get_profile("acc-1", Role.TRAINER), TrainerProfile)
    with pytest.raises(NotFound):
        registry.get_profile("acc-1", Role.CLIENT)
    assert registry.needs_role_selection(account) is False


def test_assign_role_only_from_pending(registry):
    create(registry)
    registry.assign_role("acc-1", Role.CLIENT)
    with pytest.raises(InvalidTransition):
        registry.assign_role("acc-1", Role.TRAINER)
    with pytest.raises(InvalidTransition):
        registry.assign_role("acc-1", Role.ADMIN)
    assert registry.find_by_id("acc-1").role == Role.CLIENT


def test_assign_role_to_pending_is_rejected(registry):
    create(registry)
    with pytest.raises(ValidationError):
        registry.assign_role("acc-1", Role.PENDING)


def test_assign_admin_has_no_profile(registry):
    create(registry)
    account = registry.assign_role("acc-1", Role.ADMIN)
    assert account.role == Role.ADMIN
    assert registry.needs_role_selection(account) is False


def test_assign_role_missing_account(registry):
    with pytest.raises(NotFound):
        registry.assign_role("missing", Role.CLIENT)


def test_failed_profile_insert_reverts_role(registry, account_store, monkeypatch):
    create(registry)

    def fail(account_id, role):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(account_store, "_insert_profile", fail)
    with pytest.raises(ServerError):
        registry.assign_role("acc-1", Role.TRAINER)

    account = registry.find_by_id("acc-1")
    assert account.role == Role.PENDING
    assert account_store.get_profile("acc-1", Role.TRAINER) is None


def test_role_without_profile_needs_selection_and_can_be_repaired(registry, account_store):
    create(registry)
    # Legacy row: role recorded but the profile insert never happened.
    account_store._accounts["acc-1"].role = Role.CLIENT
    account = registry.find_by_id("acc-1")
    assert registry.needs_role_selection(account) is True

    with pytest.raises(InvalidTransition):
        registry.assign_role("acc-1", Role.TRAINER)
    repaired = registry.assign_role("acc-1", Role.CLIENT)
    assert repaired.role == Role.CLIENT
    assert isinstance(registry.get_profile("acc-1", Role.CLIENT), ClientProfile)
    assert registry.needs_role_selection(repaired) is False


def test_concurrent_assign_role_creates_one_profile(registry, account_store):
    create(registry)

    def attempt(_):
        try:
            registry.assign_role("acc-1", Role.TRAINER)
            return "ok"
        except InvalidTransition:
            return "rejected"

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(16)))

    assert results.count("ok") == 1
    assert results.count("rejected") == 15
    assert len(account_store._profiles[Role.TRAINER]) == 1


def test_concurrent_ensure_pending_creates_one_account(registry, account_store):
    def attempt(i):
        return registry.ensure_pending(f"id-{i}", "race@example.com", "Race", RegistrationMethod.GOOGLE).id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = set(pool.map(attempt, range(16)))

    assert len(ids) == 1
    assert len(account_store._accounts) == 1


def test_touch_login_records_timestamp(registry):
    create(registry)
    at = registry.touch_login("acc-1")
    assert at is not None
    assert registry.find_by_id("acc-1").last_login_at == at


def test_touch_login_failure_is_logged_not_raised(registry, caplog):
    with caplog.at_level(logging.WARNING):
        assert registry.touch_login("missing") is None
    assert "Could not update last login" in caplog.text


def test_returned_accounts_are_copies(registry):
    account = create(registry)
    account.role = Role.ADMIN
    assert registry.find_by_id("acc-1").role == Role.PENDING
