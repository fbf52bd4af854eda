"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

A request authenticates with an 'Authorization: Bearer <access token>'
header. The authenticator runs at most once per request; its result (an
Identity or None) is cached on request.state, so a request that has already
been authenticated is never re-authenticated or overwritten.

try_get_current_identity() is the soft variant (returns None on failure).
get_current_identity() wraps it and raises HTTP 401 if unauthenticated.
require_role() builds a dependency that also raises HTTP 403 when the
identity lacks the role.

auth/dependencies.py may import from fastapi because it is part of the
FastAPI dependency injection system. It is the only module in auth/ that does.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.authenticator import extract_bearer
from auth.context import AuthContext
from auth.models import Identity, Role


def get_auth_context(request: Request) -> AuthContext:
    return request.app.state.auth


def bearer_token(request: Request) -> str | None:
    return extract_bearer(request.headers.get("Authorization"))


def try_get_current_identity(request: Request) -> Identity | None:
    """Authenticate the request once and cache the outcome on request.state.

    Never raises -- callers that need a hard 401 should use get_current_identity().
    """
    if getattr(request.state, "auth_attempted", False):
        return request.state.identity
    identity = get_auth_context(request).authenticator.authenticate(bearer_token(request))
    request.state.identity = identity
    request.state.auth_attempted = True
    return identity


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises HTTP 401 if the request is not authenticated."""
    identity = try_get_current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_role(role: Role | str) -> Callable[[Request], Identity]:
    """Build a dependency that requires the given role.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        def route(identity: Identity = Depends(require_role(Role.ADMIN))): ...
    """
    role_name = role.value if isinstance(role, Role) else role

    def dependency(request: Request) -> Identity:
        identity = get_current_identity(request)
        if not identity.has_role(role_name):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"{role_name} role required."},
            )
        return identity

    return dependency


require_admin = require_role(Role.ADMIN)
