"""
auth/passwords.py -- Credential hashing and verification.

Passwords: bcrypt, used directly (no passlib wrapper). Every hash embeds its
own random salt and cost factor, so verify_password() needs nothing but the
stored string. The default cost of 12 keeps a verification in the tens of
milliseconds while making offline brute force expensive.

Length: bcrypt only reads the first 72 bytes of a secret, and bcrypt >= 5
refuses longer input outright. The limit is on UTF-8 bytes, not characters,
so a 20-character password of 4-byte code points already exceeds it.
hash_password() rejects such input; registration checks fits_bcrypt() first
and turns the failure into a PasswordTooLong error.

Timing equalization [C1]: when a username does not exist, the session manager
calls burn_verification() with its own cost factor. The dummy hash is built
once per cost factor, so an unknown username costs the same bcrypt work as a
real account hashed at that cost.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import re
from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")


def fits_bcrypt(plain: str) -> bool:
    """True if the UTF-8 encoding of plain is within bcrypt's 72-byte input limit."""
    return len(plain.encode("utf-8")) <= MAX_PASSWORD_BYTES


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError if the password is longer than 72 UTF-8 bytes. Callers
    that accept user input check fits_bcrypt() first.
    """
    if not fits_bcrypt(plain):
        raise ValueError(f"password is longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a missing or malformed stored hash is simply a mismatch,
    and so is a password too long to ever have been hashed.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def is_strong_password(plain: str) -> bool:
    """Registration rule: 8+ chars with an uppercase letter, a lowercase letter and a digit."""
    return (
        len(plain) >= 8
        and _UPPER.search(plain) is not None
        and _LOWER.search(plain) is not None
        and _DIGIT.search(plain) is not None
    )


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash of a throwaway secret at the given cost, built on first use."""
    return hash_password("accountgate_timing_dummy", rounds=rounds)


def burn_verification(plain: str, rounds: int = DEFAULT_ROUNDS) -> None:
    """Run a bcrypt check at the given cost whose result is discarded [C1]."""
    verify_password(plain, dummy_hash(rounds))
