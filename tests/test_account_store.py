"""Unit tests for auth/store.py -- AccountStore.

Covers:
- create assigns a UUID id and timestamps; find by username and id
- save() persists lockout fields, roles and last_login_at
- unique username / email enforced by the schema
- exists_* and delete_account()
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Account
from auth.store import AccountStore


def _account(username: str = "alice", **fields) -> Account:
    return Account(username=username, email=f"{username}@example.com", hashed_password="$2b$04$hash", **fields)


class TestCreateAndFind:
    def test_create_assigns_id_and_stamps(self, store: AccountStore) -> None:
        account_id = store.create_account(_account())
        uuid.UUID(account_id)  # raises if not a UUID
        stored = store.find_by_id(account_id)
        assert stored is not None
        assert stored.username == "alice"
        assert stored.created_at is not None
        assert stored.updated_at is not None

    def test_defaults_round_trip(self, store: AccountStore) -> None:
        stored = store.find_by_id(store.create_account(_account()))
        assert stored.roles == {"USER"}
        assert stored.is_active and stored.is_enabled
        assert not stored.is_locked
        assert stored.failed_login_attempts == 0
        assert stored.last_login_at is None

    def test_find_by_username_is_exact(self, store: AccountStore) -> None:
        store.create_account(_account("alice"))
        assert store.find_by_username("alice") is not None
        assert store.find_by_username("Alice") is None
        assert store.find_by_username("bob") is None

    def test_find_by_unknown_id(self, store: AccountStore) -> None:
        assert store.find_by_id(str(uuid.uuid4())) is None


class TestSave:
    def test_save_persists_mutations(self, store: AccountStore) -> None:
        account = store.find_by_id(store.create_account(_account()))
        login_at = datetime(2026, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
        account.failed_login_attempts = 5
        account.is_locked = True
        account.roles = {"USER", "MODERATOR"}
        account.last_login_at = login_at

        saved = store.save(account)

        assert saved.failed_login_attempts == 5
        assert saved.is_locked
        assert saved.roles == {"USER", "MODERATOR"}
        assert saved.last_login_at == login_at

    def test_save_without_id_inserts(self, store: AccountStore) -> None:
        saved = store.save(_account("carol"))
        assert saved.id is not None
        assert store.find_by_username("carol") is not None


class TestUniqueness:
    def test_duplicate_username(self, store: AccountStore) -> None:
        store.create_account(_account("alice"))
        with pytest.raises(IntegrityError):
            store.create_account(Account(username="alice", email="other@example.com", hashed_password="h"))

    def test_duplicate_email(self, store: AccountStore) -> None:
        store.create_account(_account("alice"))
        with pytest.raises(IntegrityError):
            store.create_account(Account(username="alice2", email="alice@example.com", hashed_password="h"))

    def test_exists(self, store: AccountStore) -> None:
        store.create_account(_account("alice"))
        assert store.exists_by_username("alice")
        assert store.exists_by_email("alice@example.com")
        assert not store.exists_by_username("bob")
        assert not store.exists_by_email("bob@example.com")


def test_delete_account(store: AccountStore) -> None:
    account_id = store.create_account(_account())
    assert store.delete_account(account_id) is True
    assert store.find_by_id(account_id) is None
    assert store.delete_account(account_id) is False


def test_ping(store: AccountStore) -> None:
    assert store.ping() is True
