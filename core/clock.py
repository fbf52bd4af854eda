"""
core/clock.py -- The single wall clock shared by token issuance and validation.

Every component that compares timestamps takes a ``clock`` callable at
construction time and defaults to utc_now(). Tests pass a controllable clock
instead of patching datetime.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
