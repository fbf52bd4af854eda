"""
api/routes/v1/auth.py -- Session and account-lifecycle REST endpoints.

Routes:
  POST   /api/v1/auth/login                        -- password login; access + refresh tokens
  POST   /api/v1/auth/register                     -- create a USER account
  POST   /api/v1/auth/refresh                      -- new access token, same refresh token
  POST   /api/v1/auth/logout                       -- revoke the presented bearer token
  GET    /api/v1/auth/me                           -- current identity (requires auth)
  POST   /api/v1/auth/accounts/{account_id}/unlock -- clear lockout (admin only)
  DELETE /api/v1/auth/revocations                  -- clear the revocation ledger (admin only)

Errors:
  Handlers let auth.errors.AuthError propagate; the exception handler in
  api/main.py maps it onto the error envelope. AccountNotFound and
  InvalidCredentials share one response so the API does not reveal whether a
  username exists.

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    AccountResponse,
    AccountStatusResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    RevocationsClearedResponse,
)
from auth.context import AuthContext
from auth.dependencies import bearer_token, get_auth_context, get_current_identity, require_admin
from auth.errors import AccountNotFound
from auth.models import Account, AccountSnapshot, Identity, Session

# Auth policy:
# - POST   /auth/login, /auth/register, /auth/refresh: public
# - POST   /auth/logout: bearer token required, but stale tokens are accepted silently
# - GET    /auth/me: requires auth (get_current_identity)
# - POST   /auth/accounts/{id}/unlock, DELETE /auth/revocations: require_admin
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router so FastAPI introspects the undecorated function
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest, ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    """Authenticate with username and password; return an access/refresh token pair."""
    session = ctx.sessions.login(body.username, body.password)
    return _session_response(session, ctx.codec.access_ttl)


@router.post("/auth/register", response_model=AccountResponse, status_code=201)
def register(body: RegisterRequest, ctx: AuthContext = Depends(get_auth_context)) -> AccountResponse:
    """Create a USER account. Raises 400 for a weak password, 409 for a taken username/email."""
    account = ctx.sessions.register(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return _snapshot_to_response(AccountSnapshot.from_account(account))


@router.post("/auth/refresh", response_model=LoginResponse)
def refresh(body: RefreshRequest, ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    """Exchange a refresh token for a new access token. The refresh token is returned unchanged."""
    session = ctx.sessions.refresh(body.refresh_token)
    return _session_response(session, ctx.codec.access_ttl)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> MessageResponse:
    """Revoke the bearer token until its natural expiry.

    An expired or malformed token still gets a 200: logging out a stale
    session is not an error.
    """
    token = bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_token", "message": "No bearer token provided."},
        )
    ctx.sessions.logout(token)
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return identity information for the currently authenticated account."""
    return MeResponse(account_id=identity.account_id, username=identity.username, roles=sorted(identity.roles))


# ---------------------------------------------------------------------------
# Administration (admin only)
# ---------------------------------------------------------------------------


@router.post("/auth/accounts/{account_id}/unlock", response_model=AccountStatusResponse)
def unlock_account(
    account_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    identity: Identity = Depends(require_admin),
) -> AccountStatusResponse:
    """Reset the failure counter and clear the lock flag. Admin only."""
    try:
        account = ctx.sessions.unlock(account_id)
    except AccountNotFound as exc:
        # The caller is an admin: say plainly that the id is unknown.
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": f"Account {account_id} not found."},
        ) from exc
    return _account_status(account)


@router.delete("/auth/revocations", response_model=RevocationsClearedResponse)
def clear_revocations(
    ctx: AuthContext = Depends(get_auth_context),
    identity: Identity = Depends(require_admin),
) -> RevocationsClearedResponse:
    """Drop every revoked-token entry. Logged-out tokens become usable again until they expire."""
    return RevocationsClearedResponse(cleared=ctx.ledger.clear())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snapshot_to_response(snapshot: AccountSnapshot) -> AccountResponse:
    return AccountResponse(
        id=snapshot.id,
        username=snapshot.username,
        email=snapshot.email,
        first_name=snapshot.first_name,
        last_name=snapshot.last_name,
        roles=sorted(snapshot.roles),
    )


def _session_response(session: Session, expires_in: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            token_type=session.token_type,
            expires_at=session.expires_at,
            expires_in=expires_in,
            user=_snapshot_to_response(session.account),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _account_status(account: Account) -> AccountStatusResponse:
    return AccountStatusResponse(
        id=account.id or "",
        username=account.username,
        is_locked=account.is_locked,
        failed_login_attempts=account.failed_login_attempts,
    )
