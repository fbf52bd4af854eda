"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no persistence or HTTP logic). The
store maps rows onto Account; the token codec maps JWT payloads onto
TokenClaims; routes map Session onto the API response models.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    """Role tags carried on accounts and access tokens."""

    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class Account:
    """A user account as read and mutated by the auth core.

    Login is permitted only while is_active, is_enabled and not is_locked.
    is_locked is set by the lockout policy after five consecutive failures and
    is cleared only by an explicit reset (see auth/lockout.py).

    roles is a set of role tags; it is never empty for a registered account.
    """

    username: str
    email: str
    hashed_password: str
    roles: set[str] = field(default_factory=lambda: {Role.USER.value})
    id: str | None = None
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True
    is_enabled: bool = True
    is_locked: bool = False
    failed_login_attempts: int = 0
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AccountSnapshot:
    """Public account fields returned alongside a session. No credential data."""

    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    roles: frozenset[str]

    @classmethod
    def from_account(cls, account: Account) -> AccountSnapshot:
        return cls(
            id=account.id or "",
            username=account.username,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            roles=frozenset(account.roles),
        )


@dataclass(frozen=True)
class TokenClaims:
    """The signed claim bundle carried inside a token.

    iat and exp are integer Unix timestamps (JWT NumericDate). roles is empty
    for refresh tokens.
    """

    sub: str
    account_id: str
    kind: TokenKind
    iss: str
    iat: int
    exp: int
    jti: str
    roles: frozenset[str] = frozenset()

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


@dataclass(frozen=True)
class Session:
    """Result of a successful login or refresh."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    account: AccountSnapshot
    token_type: str = "Bearer"


@dataclass(frozen=True)
class Identity:
    """The authenticated principal attached to a request.

    Authorization is an explicit set-membership check on roles, made by the
    caller (see auth.dependencies.require_role).
    """

    account_id: str
    username: str
    roles: frozenset[str]

    def has_role(self, role: str | Role) -> bool:
        value = role.value if isinstance(role, Role) else role
        return value in self.roles
