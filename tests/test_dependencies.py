"""
tests/test_dependencies.py -- Tests for the FastAPI auth dependencies.

Covers:
  - one request that needs both get_current_identity and require_admin runs
    the authenticator exactly once and sees one Identity
  - an identity already resolved on request.state is returned unchanged and
    is never re-authenticated or overwritten
  - a failed authentication is cached too (None, not retried)

The app here is a bare FastAPI instance carrying the unit-test AuthContext on
app.state.auth, so these tests do not depend on api/main.py's middleware.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from auth.authenticator import RequestAuthenticator
from auth.context import AuthContext
from auth.dependencies import get_current_identity, require_admin, try_get_current_identity
from auth.models import Identity
from auth.store import AccountStore


class CountingAuthenticator:
    """Wraps a RequestAuthenticator and counts authenticate() calls."""

    def __init__(self, inner: RequestAuthenticator) -> None:
        self.inner = inner
        self.calls = 0

    def authenticate(self, token: str | None) -> Identity | None:
        self.calls += 1
        return self.inner.authenticate(token)


@pytest.fixture
def store(request):
    # TestClient runs sync dependencies in a worker thread; plain :memory: is
    # per-connection, so use a named shared-memory database (see conftest).
    s = AccountStore(f"sqlite:///file:deps_{request.node.name}?mode=memory&cache=shared&uri=true")
    yield s
    s.close()


@pytest.fixture
def counting(ctx: AuthContext) -> CountingAuthenticator:
    wrapper = CountingAuthenticator(ctx.authenticator)
    ctx.authenticator = wrapper
    return wrapper


@pytest.fixture
def client(ctx: AuthContext) -> TestClient:
    app = FastAPI()
    app.state.auth = ctx

    @app.get("/both")
    def both(
        current: Identity = Depends(get_current_identity),
        admin: Identity = Depends(require_admin),
    ) -> dict:
        return {"same": current is admin, "username": admin.username}

    return TestClient(app)


def _request(ctx: AuthContext, token: str | None = None) -> Request:
    headers = [(b"authorization", f"Bearer {token}".encode())] if token else []
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": headers,
        "app": SimpleNamespace(state=SimpleNamespace(auth=ctx)),
    }
    return Request(scope)


class TestAuthenticateOncePerRequest:
    def test_two_dependencies_share_one_authentication(
        self, client: TestClient, ctx: AuthContext, counting: CountingAuthenticator, add_account
    ) -> None:
        token = ctx.codec.issue_access(add_account("boss", roles={"USER", "ADMIN"}))
        resp = client.get("/both", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"same": True, "username": "boss"}
        assert counting.calls == 1

    def test_each_request_authenticates_afresh(
        self, client: TestClient, ctx: AuthContext, counting: CountingAuthenticator, add_account
    ) -> None:
        token = ctx.codec.issue_access(add_account("boss", roles={"USER", "ADMIN"}))
        for _ in range(3):
            client.get("/both", headers={"Authorization": f"Bearer {token}"})
        assert counting.calls == 3

    def test_failed_authentication_is_cached(self, ctx: AuthContext, counting: CountingAuthenticator) -> None:
        request = _request(ctx, "garbage")
        assert try_get_current_identity(request) is None
        assert try_get_current_identity(request) is None
        assert counting.calls == 1
        assert request.state.auth_attempted is True


class TestPresetIdentity:
    def test_preset_identity_is_returned_unchanged(
        self, ctx: AuthContext, counting: CountingAuthenticator, add_account
    ) -> None:
        # The header names a different account; the resolved identity wins.
        other_token = ctx.codec.issue_access(add_account("someone_else"))
        preset = Identity(account_id="acct-1", username="already_here", roles=frozenset({"ADMIN"}))
        request = _request(ctx, other_token)
        request.state.identity = preset
        request.state.auth_attempted = True

        assert try_get_current_identity(request) is preset
        assert get_current_identity(request) is preset
        assert require_admin(request) is preset
        assert request.state.identity is preset
        assert counting.calls == 0
