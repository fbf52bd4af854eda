"""
tests/conftest.py -- Shared test fixtures for AccountGate.

This module provides:
  - FrozenClock: a controllable clock injected wherever the code takes `clock=`
  - settings / store / ctx: unit-test wiring on a private in-memory database
  - make_account() / add_account: insert an account with a known password
  - api_client: TestClient over the real app with an isolated AuthContext

Design: API tests use a named shared-memory SQLite URI (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment defaults must be set before any api/ or core/ import:
  DEBUG=true            -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4       -- keeps every password hash in the microsecond range
  LOGIN_RATE_LIMIT      -- raised so lockout tests are not throttled
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.context import AuthContext, build_auth_context
from auth.models import Account, Role
from auth.passwords import hash_password
from auth.store import AccountStore
from core.config import Settings

TEST_SECRET = "test-secret-key-with-at-least-32-characters"
TEST_ROUNDS = 4


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_account(
    store: AccountStore,
    username: str,
    password: str = "Passw0rd!",
    roles: set[str] | None = None,
    **fields,
) -> Account:
    """Insert an account with a known password and return the stored copy."""
    account = Account(
        username=username,
        email=f"{username}@example.com",
        hashed_password=hash_password(password, rounds=TEST_ROUNDS),
        roles=roles or {Role.USER.value},
        **fields,
    )
    store.create_account(account)
    return store.find_by_id(account.id)


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key=TEST_SECRET,
        token_issuer="accountgate-test",
        access_token_expire_seconds=900,
        refresh_token_expire_seconds=7 * 24 * 3600,
        bcrypt_rounds=TEST_ROUNDS,
    )


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def ctx(settings: Settings, store: AccountStore, clock: FrozenClock) -> AuthContext:
    return build_auth_context(settings, store=store, clock=clock)


@pytest.fixture
def add_account(store: AccountStore):
    """Return make_account() bound to the unit-test store."""

    def _add(username: str, password: str = "Passw0rd!", roles: set[str] | None = None, **fields) -> Account:
        return make_account(store, username, password, roles, **fields)

    return _add


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(auth_ctx: AuthContext):
    """Return a lifespan that wires a pre-built AuthContext into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = auth_ctx
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthContext, str], None, None]:
    """Yield (client, auth_context, admin_access_token) for API integration tests.

    The admin account is "testadmin" / "Adm1nPassword" with roles ADMIN and USER.
    Each test module gets its own shared-memory database.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    store = AccountStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    auth_ctx = build_auth_context(
        Settings(secret_key=TEST_SECRET, bcrypt_rounds=TEST_ROUNDS, login_rate_limit="1000/minute"),
        store=store,
    )
    admin = make_account(store, "testadmin", "Adm1nPassword", roles={Role.ADMIN.value, Role.USER.value})
    token = auth_ctx.codec.issue_access(admin)

    app.router.lifespan_context = _patch_lifespan(auth_ctx)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_ctx, token

    store.close()
