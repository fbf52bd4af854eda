"""
auth/revocation.py -- In-memory ledger of logged-out tokens.

Maps a raw token value to that token's natural expiry. A token is revoked
only while it is still in the ledger AND its natural expiry lies in the
future; after that the token fails expiry validation on its own, so the entry
is dead weight and is dropped on the next lookup.

Memory is bounded two ways, both independent of the token's own expiry:
  - retention: an entry older than retention_seconds (measured from its last
    write) is evicted.
  - capacity: at most max_entries live entries; the oldest write goes first.

Both bounds are memory management, not a security boundary: the ledger is
only consulted for tokens that still pass signature and expiry checks.

Data structure: an OrderedDict ordered by write time (an overwrite moves the
key to the end) plus one threading.Lock. The oldest entries are always at the
head, so eviction on insert pops from the front until the head is fresh.
There is no background sweeper.

Thread safety: every public method takes the lock. Callers never lock.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import NamedTuple

from auth.tokens import token_preview
from core.clock import Clock, utc_now

logger = logging.getLogger("accountgate.auth")

_DEFAULT_MAX_ENTRIES = 10_000
_DEFAULT_RETENTION = 24 * 60 * 60  # 24 hours in seconds


class _Entry(NamedTuple):
    natural_expiry: datetime
    written_at: datetime


class RevocationLedger:
    """Bounded, time-expiring set of revoked tokens.

    Usage:
        ledger = RevocationLedger()
        ledger.revoke(token, claims.expires_at)
        ledger.is_revoked(token)   # True until the token's natural expiry
        ledger.clear()             # admin operation
    """

    def __init__(
        self,
        max_entries: int = _DEFAULT_MAX_ENTRIES,
        retention_seconds: int = _DEFAULT_RETENTION,
        clock: Clock = utc_now,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.retention = timedelta(seconds=retention_seconds)
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def revoke(self, token: str, natural_expiry: datetime) -> None:
        """Insert or overwrite the entry for token. Idempotent."""
        now = self._clock()
        with self._lock:
            self._entries[token] = _Entry(natural_expiry, now)
            self._entries.move_to_end(token)
            self._evict(now)
        logger.debug("Token revoked: %s", token_preview(token))

    def is_revoked(self, token: str) -> bool:
        """True only if token is present and its natural expiry has not passed.

        An entry whose natural expiry (or retention window) has passed is
        dropped and reported as not revoked.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return False
            if now >= entry.natural_expiry or now - entry.written_at >= self.retention:
                del self._entries[token]
                return False
            return True

    def remove(self, token: str) -> bool:
        """Drop a single entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(token, None) is not None

    def clear(self) -> int:
        """Drop every entry (admin operation). Returns the number removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("All revoked tokens cleared (%d entries)", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self, now: datetime) -> None:
        # Caller holds the lock. Head entries are the oldest writes.
        cutoff = now - self.retention
        while self._entries:
            _token, entry = next(iter(self._entries.items()))
            if entry.written_at > cutoff:
                break
            self._entries.popitem(last=False)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
