"""
auth/context.py -- The process-scoped auth context.

One AuthContext is built at startup (api/main.py lifespan) from Settings and
stored on app.state.auth. It owns the signing key (inside the codec), the
revocation ledger and the account store, and hands the same instances to the
session manager and the request authenticator. Nothing in auth/ keeps
module-level mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.authenticator import RequestAuthenticator
from auth.revocation import RevocationLedger
from auth.sessions import SessionManager
from auth.store import AccountStore
from auth.tokens import TokenCodec
from core.clock import Clock, utc_now
from core.config import Settings


@dataclass
class AuthContext:
    store: AccountStore
    codec: TokenCodec
    ledger: RevocationLedger
    sessions: SessionManager
    authenticator: RequestAuthenticator

    def close(self) -> None:
        self.store.close()


def build_auth_context(
    settings: Settings,
    store: AccountStore | None = None,
    clock: Clock = utc_now,
) -> AuthContext:
    """Wire the auth components together.

    Args:
        settings: Source of the signing key, token lifetimes, ledger bounds
                  and bcrypt cost.
        store:    Account store to use. Defaults to one on settings.database_url.
        clock:    Shared clock for issuance, validation and the ledger.
    """
    store = store or AccountStore(settings.database_url)
    codec = TokenCodec(
        settings.secret_key,
        issuer=settings.token_issuer,
        access_ttl=settings.access_token_expire_seconds,
        refresh_ttl=settings.refresh_token_expire_seconds,
        clock=clock,
    )
    ledger = RevocationLedger(
        max_entries=settings.revocation_max_entries,
        retention_seconds=settings.revocation_retention_seconds,
        clock=clock,
    )
    sessions = SessionManager(store, codec, ledger, clock=clock, password_rounds=settings.bcrypt_rounds)
    authenticator = RequestAuthenticator(codec, ledger, store)
    return AuthContext(store=store, codec=codec, ledger=ledger, sessions=sessions, authenticator=authenticator)
