"""
auth/sessions.py -- Login, logout, refresh and the account lifecycle around them.

SessionManager composes the password verifier, the lockout policy, the token
codec and the revocation ledger. It is the only auth component that writes to
the account store.

Login order matters:
  1. unknown username  -> AccountNotFound (after a dummy bcrypt check [C1])
  2. inactive/locked   -> AccountInactive (the password is never checked)
  3. wrong password    -> failure transition persisted, then InvalidCredentials,
                          or TooManyFailures when this failure set the lock
  4. right password    -> success transition + last_login_at persisted, tokens issued

Because step 2 precedes step 3, a locked account can never reach the success
transition: only unlock() clears a lock, whether it was set by the failure
counter or by an administrator.

Concurrency: steps 1-4 read, modify and write one account row with no store
transaction. They run under a striped lock chosen by username so two
concurrent failed logins against the same account cannot both read n and
write n+1.

Refresh tokens are not rotated: refresh() returns the presented refresh
token unchanged alongside the new access token.
"""

from __future__ import annotations

import logging
import threading

from sqlalchemy.exc import IntegrityError

from auth import lockout
from auth.errors import (
    AccountConflict,
    AccountInactive,
    AccountNotFound,
    InvalidCredentials,
    InvalidToken,
    MalformedToken,
    PasswordTooLong,
    TooManyFailures,
    WeakPassword,
)
from auth.models import Account, AccountSnapshot, Role, Session, TokenKind
from auth.passwords import (
    DEFAULT_ROUNDS,
    burn_verification,
    dummy_hash,
    fits_bcrypt,
    hash_password,
    is_strong_password,
    verify_password,
)
from auth.revocation import RevocationLedger
from auth.store import AccountStore
from auth.tokens import TokenCodec, token_preview
from core.clock import Clock, utc_now

logger = logging.getLogger("accountgate.auth")

_LOCK_STRIPES = 64


class SessionManager:
    """Issues and ends sessions for accounts held in an AccountStore."""

    def __init__(
        self,
        store: AccountStore,
        codec: TokenCodec,
        ledger: RevocationLedger,
        *,
        clock: Clock = utc_now,
        password_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._store = store
        self._codec = codec
        self._ledger = ledger
        self._clock = clock
        self._password_rounds = password_rounds
        self._stripes = [threading.Lock() for _ in range(_LOCK_STRIPES)]
        # Build the unknown-username dummy hash now, at the same cost as real hashes.
        dummy_hash(password_rounds)

    def _account_lock(self, key: str) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    # ------------------------------------------------------------------
    # Login / logout / refresh
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> Session:
        """Verify credentials, apply the lockout policy and issue a token pair.

        Raises AccountNotFound, AccountInactive (TooManyFailures on the attempt
        that locks the account) or InvalidCredentials. Lockout transitions are
        persisted before the error is raised.
        """
        with self._account_lock(username):
            account = self._store.find_by_username(username)
            if account is None:
                burn_verification(password, self._password_rounds)
                logger.warning("Login failed: unknown username %r", username)
                raise AccountNotFound(f"No account named {username!r}")

            if not lockout.can_login(account):
                logger.warning(
                    "Login refused for %r: active=%s enabled=%s locked=%s",
                    username,
                    account.is_active,
                    account.is_enabled,
                    account.is_locked,
                )
                raise AccountInactive(f"Account {username!r} is inactive, disabled or locked")

            now = self._clock()
            if not verify_password(password, account.hashed_password):
                just_locked = lockout.record_failure(account, now)
                self._store.save(account)
                if just_locked:
                    logger.warning(
                        "Account %r locked after %d failed login attempts",
                        username,
                        account.failed_login_attempts,
                    )
                    raise TooManyFailures(f"Account {username!r} locked after repeated failures")
                logger.info("Login failed for %r (attempt %d)", username, account.failed_login_attempts)
                raise InvalidCredentials(f"Wrong password for {username!r}")

            lockout.record_success(account, now)
            account = self._store.save(account)

        session = self._issue_session(account)
        logger.info("User logged in successfully: %s", username)
        return session

    def logout(self, token: str) -> bool:
        """Revoke a still-valid token until its natural expiry.

        Stale or malformed tokens are a silent no-op. Returns True if the
        token was revoked.
        """
        try:
            claims = self._codec.decode(token)
        except MalformedToken:
            return False
        if self._codec.is_expired(claims):
            return False
        self._ledger.revoke(token, claims.expires_at)
        logger.info("User logged out: %s (%s token %s)", claims.sub, claims.kind.value, token_preview(token))
        return True

    def refresh(self, refresh_token: str) -> Session:
        """Mint a new access token from a valid refresh token.

        Raises InvalidToken (malformed, expired or revoked), WrongTokenKind
        (an access token was presented) or AccountNotFound (the account was
        deleted since the token was issued).
        """
        try:
            claims = self._codec.decode(refresh_token)
        except MalformedToken as exc:
            raise InvalidToken("Invalid refresh token") from exc
        if self._codec.is_expired(claims):
            raise InvalidToken("Refresh token has expired")
        self._codec.require_kind(claims, TokenKind.REFRESH)
        if self._ledger.is_revoked(refresh_token):
            raise InvalidToken("Refresh token has been revoked")

        account = self._store.find_by_username(claims.sub)
        if account is None:
            raise AccountNotFound(f"Account {claims.sub!r} no longer exists")

        access_token = self._codec.issue_access(account)
        logger.info("Access token refreshed for %s", account.username)
        return Session(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._codec.decode(access_token).expires_at,
            account=AccountSnapshot.from_account(account),
        )

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def unlock(self, account_id: str) -> Account:
        """Administrative reset: clear the failure counter and the lock flag."""
        account = self._store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound(f"No account with id {account_id!r}")
        with self._account_lock(account.username):
            account = self._store.find_by_id(account_id) or account
            lockout.reset(account, self._clock())
            account = self._store.save(account)
        logger.info("Account %r unlocked", account.username)
        return account

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Account:
        """Create a USER account with every status flag set.

        Raises WeakPassword, PasswordTooLong or AccountConflict.
        """
        if not is_strong_password(password):
            raise WeakPassword()
        if not fits_bcrypt(password):
            raise PasswordTooLong(f"Password for {username!r} is {len(password.encode('utf-8'))} bytes")
        if self._store.exists_by_username(username):
            raise AccountConflict(f"Username {username!r} already exists")
        if self._store.exists_by_email(email):
            raise AccountConflict(f"Email {email!r} already exists")

        now = self._clock()
        account = Account(
            username=username,
            email=email,
            hashed_password=hash_password(password, rounds=self._password_rounds),
            roles={Role.USER.value},
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        try:
            self._store.create_account(account)
        except IntegrityError as exc:
            # A concurrent registration won the race between exists_* and insert.
            raise AccountConflict(f"Username {username!r} or email {email!r} already exists") from exc
        logger.info("New user registered: %s", username)
        return account

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_session(self, account: Account) -> Session:
        access_token = self._codec.issue_access(account)
        refresh_token = self._codec.issue_refresh(account)
        return Session(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._codec.decode(access_token).expires_at,
            account=AccountSnapshot.from_account(account),
        )
