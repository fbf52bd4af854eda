"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account / _account_values are the
mappers. The session manager and routes never touch SQL directly.

Consistency: every method opens its own connection and commits before
returning, so reads see earlier writes (read-your-writes) but there is no
cross-call transaction. The session manager serializes the read-then-write
sequence of a login per account (see auth/sessions.py).

Security:
  All queries use bound parameters. No f-strings in SQL.

Roles are stored as a JSON array in a TEXT column; the set has at most a
handful of members and is always read and written whole.

Timestamps are stored as ISO 8601 strings (UTC).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import Account
from core.clock import utc_now

_DEFAULT_DB_URL = "sqlite:///accountgate.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("roles", Text, nullable=False, server_default='["USER"]'),  # JSON array
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_enabled", Integer, nullable=False, server_default="1"),
    Column("is_locked", Integer, nullable=False, server_default="0"),
    Column("failed_login_attempts", Integer, nullable=False, server_default="0"),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore()
        account_id = store.create_account(Account(username="alice", email="a@x.io", hashed_password=h))
        account = store.find_by_username("alice")
        store.save(account)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def exists_by_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_accounts.c.id).where(_accounts.c.username == username)).first()
        return found is not None

    def exists_by_email(self, email: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_accounts.c.id).where(_accounts.c.email == email)).first()
        return found is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> str:
        """Insert a new account and return its id.

        Assigns a UUID4 id and the created/updated stamps when missing. Raises
        sqlalchemy.exc.IntegrityError if the username or email already exists;
        callers treat that as a conflict from a concurrent registration.
        """
        now = utc_now()
        account.id = account.id or str(uuid.uuid4())
        account.created_at = account.created_at or now
        account.updated_at = account.updated_at or now
        with self.engine.connect() as conn:
            conn.execute(_accounts.insert().values(id=account.id, **_account_values(account)))
            conn.commit()
        return account.id

    def save(self, account: Account) -> Account:
        """Persist every mutable field of an existing account and return the stored copy.

        Accounts without an id are inserted instead.
        """
        if account.id is None:
            self.create_account(account)
        else:
            with self.engine.connect() as conn:
                conn.execute(_accounts.update().where(_accounts.c.id == account.id).values(**_account_values(account)))
                conn.commit()
        stored = self.find_by_id(account.id)
        if stored is None:
            raise LookupError(f"Account {account.id} vanished during save")
        return stored

    def delete_account(self, account_id: str) -> bool:
        """Permanently delete an account. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _account_values(account: Account) -> dict:
    return {
        "username": account.username,
        "email": account.email,
        "hashed_password": account.hashed_password,
        "roles": json.dumps(sorted(account.roles)),
        "first_name": account.first_name,
        "last_name": account.last_name,
        "is_active": 1 if account.is_active else 0,
        "is_enabled": 1 if account.is_enabled else 0,
        "is_locked": 1 if account.is_locked else 0,
        "failed_login_attempts": account.failed_login_attempts,
        "last_login_at": _iso(account.last_login_at),
        "created_at": _iso(account.created_at),
        "updated_at": _iso(account.updated_at or utc_now()),
    }


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        roles=set(json.loads(row.roles)),
        first_name=row.first_name,
        last_name=row.last_name,
        is_active=bool(row.is_active),
        is_enabled=bool(row.is_enabled),
        is_locked=bool(row.is_locked),
        failed_login_attempts=row.failed_login_attempts,
        last_login_at=_parse(row.last_login_at),
        created_at=_parse(row.created_at),
        updated_at=_parse(row.updated_at),
    )
