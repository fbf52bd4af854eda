"""
auth/tokens.py -- Signed, expiring bearer tokens.

Security design decisions:
  JWT: python-jose with HS256 and the single process-wide SECRET_KEY. Tokens
       carry the username as subject, the account id, the token kind
       ("access" or "refresh"), issuer, issued-at and expiry. Access tokens
       also carry the role list; refresh tokens never do.

  jti: every token gets a random id. JWT timestamps have one-second
       resolution, so without it two logins in the same second would mint
       byte-identical tokens, and logging out one session would revoke the
       other.

  Expiry: decode() verifies signature, issuer and structure but NOT expiry.
       exp is exposed as a claim so callers choose the policy: is_valid()
       requires now < exp (no leeway, same clock as issuance), while logout
       reads exp to key the revocation entry.

  Key rotation: changing SECRET_KEY invalidates every outstanding token.
       There is no multi-key support.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from jose import JWTError, jwt

from auth.errors import MalformedToken, WrongTokenKind
from auth.models import Account, TokenClaims, TokenKind
from core.clock import Clock, utc_now

logger = logging.getLogger("accountgate.auth")

ALGORITHM = "HS256"

_REQUIRED_CLAIMS = ("sub", "account_id", "kind", "iss", "iat", "exp", "jti")


def token_preview(token: str) -> str:
    """Return a log-safe prefix of a token. Full token values are never logged."""
    return token[:10] + "..."


class TokenCodec:
    """Encodes and decodes signed tokens with one symmetric key.

    Usage:
        codec = TokenCodec(secret_key, issuer="accountgate", access_ttl=3600, refresh_ttl=604800)
        token = codec.issue_access(account)
        claims = codec.decode(token)
        codec.is_valid(token)
    """

    def __init__(
        self,
        secret_key: str,
        *,
        issuer: str,
        access_ttl: int,
        refresh_ttl: int,
        clock: Clock = utc_now,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.issuer = issuer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(
        self,
        account_id: str,
        username: str,
        roles: Iterable[str],
        kind: TokenKind,
        lifetime: int | None = None,
    ) -> str:
        """Sign and return a compact token.

        Args:
            account_id: Embedded as the account_id claim.
            username:   Stored as the JWT subject.
            roles:      Embedded for access tokens only.
            kind:       TokenKind.ACCESS or TokenKind.REFRESH.
            lifetime:   Seconds until expiry. Defaults to the configured TTL
                        for the kind.
        """
        kind = TokenKind(kind)
        if lifetime is None:
            lifetime = self.access_ttl if kind is TokenKind.ACCESS else self.refresh_ttl
        issued_at = int(self._clock().timestamp())
        payload: dict = {
            "sub": username,
            "account_id": str(account_id),
            "kind": kind.value,
            "iss": self.issuer,
            "iat": issued_at,
            "exp": issued_at + lifetime,
            "jti": uuid.uuid4().hex,
        }
        if kind is TokenKind.ACCESS:
            payload["roles"] = sorted(roles)
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def issue_access(self, account: Account) -> str:
        return self.issue(account.id, account.username, account.roles, TokenKind.ACCESS)

    def issue_refresh(self, account: Account) -> str:
        return self.issue(account.id, account.username, (), TokenKind.REFRESH)

    # ------------------------------------------------------------------
    # Decode / validate
    # ------------------------------------------------------------------

    def decode(self, token: str) -> TokenClaims:
        """Verify signature, issuer and structure and return the claims.

        Raises MalformedToken on any failure. An expired token decodes fine.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError as exc:
            raise MalformedToken(f"Token rejected: {exc}") from exc

        missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
        if missing:
            raise MalformedToken(f"Token is missing claims: {', '.join(missing)}")
        try:
            kind = TokenKind(payload["kind"])
            roles = payload.get("roles") or []
            if not isinstance(roles, list):
                raise TypeError("roles claim must be a list")
            return TokenClaims(
                sub=str(payload["sub"]),
                account_id=str(payload["account_id"]),
                kind=kind,
                iss=str(payload["iss"]),
                iat=int(payload["iat"]),
                exp=int(payload["exp"]),
                jti=str(payload["jti"]),
                roles=frozenset(str(r) for r in roles),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedToken(f"Token claims are malformed: {exc}") from exc

    def is_expired(self, claims: TokenClaims) -> bool:
        # Boundary: a token is already expired at exactly exp.
        return self._clock().timestamp() >= claims.exp

    def is_valid(self, token: str) -> bool:
        """True iff the token decodes and has not yet expired."""
        try:
            claims = self.decode(token)
        except MalformedToken as exc:
            logger.debug("Token validation failed: %s", exc)
            return False
        return not self.is_expired(claims)

    def is_valid_for_subject(self, token: str, username: str) -> bool:
        """is_valid() and the token's subject is the expected username."""
        try:
            claims = self.decode(token)
        except MalformedToken:
            return False
        return claims.sub == username and not self.is_expired(claims)

    @staticmethod
    def require_kind(claims: TokenClaims, kind: TokenKind) -> None:
        """Raise WrongTokenKind unless the claims are of the expected kind."""
        if claims.kind is not kind:
            raise WrongTokenKind(expected=kind.value, actual=claims.kind.value)
