"""
auth/lockout.py -- Brute-force lockout policy.

A pure state machine over (failed_attempts, locked):

    Unlocked(n), 0 <= n <= 4 --failure--> Unlocked(n+1), or Locked when n+1 == 5
    Locked                   --failure--> Locked (counter still increments, for audit)
    any                      --success--> Unlocked(0)
    any                      --reset----> Unlocked(0)

Locked is sticky: time alone never clears it. The session manager checks
can_login() before verifying the password, so a locked account never reaches
the success transition; only an explicit reset unlocks it.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from auth.models import Account

MAX_FAILED_ATTEMPTS = 5


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int = 0
    locked: bool = False

    def on_failure(self) -> LockoutState:
        attempts = self.failed_attempts + 1
        return LockoutState(attempts, self.locked or attempts >= MAX_FAILED_ATTEMPTS)

    def on_success(self) -> LockoutState:
        return LockoutState()

    def on_reset(self) -> LockoutState:
        return LockoutState()


def state_of(account: Account) -> LockoutState:
    return LockoutState(account.failed_login_attempts, account.is_locked)


def apply_state(account: Account, state: LockoutState, now: datetime) -> None:
    """Write a lockout state back onto the account and stamp updated_at."""
    account.failed_login_attempts = state.failed_attempts
    account.is_locked = state.locked
    account.updated_at = now


def can_login(account: Account) -> bool:
    return account.is_active and account.is_enabled and not account.is_locked


def record_failure(account: Account, now: datetime) -> bool:
    """Apply the failure transition. Returns True if this failure locked the account."""
    before = state_of(account)
    after = before.on_failure()
    apply_state(account, after, now)
    return after.locked and not before.locked


def record_success(account: Account, now: datetime) -> None:
    apply_state(account, state_of(account).on_success(), now)
    account.last_login_at = now


def reset(account: Account, now: datetime) -> None:
    """Administrative unlock: clears the counter and the lock flag."""
    apply_state(account, state_of(account).on_reset(), now)
