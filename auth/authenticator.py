"""
auth/authenticator.py -- Per-request bearer token gate.

authenticate() never raises. Every failure (no token, bad signature, revoked,
expired, unknown subject) degrades to None, meaning "unauthenticated"; the
route's dependency decides whether that is a 401 (see auth/dependencies.py).

Only access tokens authenticate a request. A refresh token is accepted by
SessionManager.refresh() and nowhere else.

The resolved Identity carries the account's current roles rather than the
roles frozen into the token, so a role removed by an administrator stops
granting access before the token expires.
"""

from __future__ import annotations

import logging

from auth.errors import MalformedToken
from auth.models import Identity, TokenKind
from auth.revocation import RevocationLedger
from auth.store import AccountStore
from auth.tokens import TokenCodec, token_preview

logger = logging.getLogger("accountgate.auth")

_BEARER_PREFIX = "Bearer "


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header value, or None."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    return authorization[len(_BEARER_PREFIX) :].strip() or None


class RequestAuthenticator:
    def __init__(self, codec: TokenCodec, ledger: RevocationLedger, store: AccountStore) -> None:
        self._codec = codec
        self._ledger = ledger
        self._store = store

    def authenticate(self, token: str | None) -> Identity | None:
        """Resolve a bearer token to an Identity, or None if it does not authenticate."""
        if not token:
            return None
        try:
            claims = self._codec.decode(token)
        except MalformedToken as exc:
            logger.warning("Cannot set user authentication: %s", exc)
            return None

        if claims.kind is not TokenKind.ACCESS:
            logger.debug("Rejected %s token used as a credential", claims.kind.value)
            return None
        if self._ledger.is_revoked(token):
            logger.debug("Token is revoked: %s", token_preview(token))
            return None

        account = self._store.find_by_username(claims.sub)
        if account is None or not self._codec.is_valid_for_subject(token, account.username):
            return None

        logger.debug("Successfully authenticated user: %s", account.username)
        return Identity(account_id=account.id, username=account.username, roles=frozenset(account.roles))

    def authenticate_header(self, authorization: str | None) -> Identity | None:
        return self.authenticate(extract_bearer(authorization))
