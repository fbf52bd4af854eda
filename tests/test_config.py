"""
tests/test_config.py -- Unit tests for core/config.py Settings.

Covers:
  - production mode refuses to start without SECRET_KEY
  - debug mode generates a 64-char hex key
  - keys shorter than 32 characters are rejected in both modes
  - environment variables override the token and ledger defaults
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

VALID_KEY = "k" * 32


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "BCRYPT_ROUNDS", "ACCESS_TOKEN_EXPIRE_SECONDS", "REVOCATION_MAX_ENTRIES"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_production_requires_secret_key(clean_env) -> None:
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None)


def test_debug_generates_secret_key(clean_env) -> None:
    clean_env.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.secret_key) == 64


@pytest.mark.parametrize("debug", [True, False])
def test_short_secret_key_rejected(clean_env, debug: bool) -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=debug, secret_key="too-short")


def test_defaults(clean_env) -> None:
    settings = Settings(_env_file=None, secret_key=VALID_KEY)
    assert settings.access_token_expire_seconds == 3600
    assert settings.refresh_token_expire_seconds == 7 * 24 * 3600
    assert settings.revocation_max_entries == 10_000
    assert settings.revocation_retention_seconds == 24 * 3600
    assert settings.bcrypt_rounds == 12


def test_env_overrides(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", VALID_KEY)
    clean_env.setenv("ACCESS_TOKEN_EXPIRE_SECONDS", "60")
    clean_env.setenv("REVOCATION_MAX_ENTRIES", "5")
    settings = Settings(_env_file=None)
    assert settings.secret_key == VALID_KEY
    assert settings.access_token_expire_seconds == 60
    assert settings.revocation_max_entries == 5


def test_bcrypt_rounds_bounds(clean_env) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=VALID_KEY, bcrypt_rounds=3)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
