import os

os.environ.setdefault("AUTH_BACKEND", "memory")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from coachgate.config import settings
from coachgate.core.dependencies import get_account_store, get_credential_store, get_session_manager
from coachgate.main import app
from coachgate.modules.accounts.service import AccountRegistry
from coachgate.modules.accounts.store import InMemoryAccountStore
from coachgate.modules.auth.service import AuthWorkflow
from coachgate.modules.credentials.service import InMemoryCredentialStore
from coachgate.modules.sessions.service import SessionManager

PASSWORD = "Password1!"


class FakeClock:
    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore(max_attempts=3, attempt_window_seconds=300, hash_rounds=4)


@pytest.fixture
def account_store():
    return InMemoryAccountStore()


@pytest.fixture
def registry(account_store):
    return AccountRegistry(account_store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return SessionManager(secret="test-session-secret", clock=clock)


@pytest.fixture
def workflow(credential_store, registry, sessions):
    return AuthWorkflow(
        credential_store,
        registry,
        sessions,
        disposable_domains=settings.get_disposable_domains(),
    )


@pytest.fixture
def client(credential_store, account_store):
    app.dependency_overrides[get_credential_store] = lambda: credential_store
    app.dependency_overrides[get_account_store] = lambda: account_store
    app.dependency_overrides[get_session_manager] = lambda: SessionManager(secret="test-session-secret")
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def registration_body(email="alice@example.com", name="Alice", password=PASSWORD, password_repeat=None):
    return {
        "email": email,
        "name": name,
        "password": password,
        "passwordRepeat": password if password_repeat is None else password_repeat,
    }
