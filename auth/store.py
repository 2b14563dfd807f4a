"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository; _row_to_account
is the mapper. The service layer never touches SQL directly and depends only on
the CredentialStore protocol, so any object with the same methods (a Postgres
store, a test double) can be injected in its place.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  username and email are UNIQUE columns. Both are nullable -- OAuth-created
  accounts have no username, username-only registrations have no email -- and
  SQL treats NULLs as distinct, so absent values never collide. Two concurrent
  registrations of the same username are resolved here: the loser's INSERT
  raises IntegrityError, translated to DuplicateAccountError. The service has
  no cross-request visibility and relies on this.

Errors:
  IntegrityError   -> DuplicateAccountError (field set when it can be told)
  SQLAlchemyError  -> CredentialStoreError
  Nothing is retried.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import CredentialStoreError, DuplicateAccountError
from auth.models import Account

logger = logging.getLogger("authgate.auth.store")

# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    """The narrow persistence contract AuthService depends on."""

    def find_by_username(self, username: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def create(
        self,
        username: str | None,
        hashed_password: str | None,
        email: str | None = None,
        verified: bool = False,
        display_name: str | None = None,
    ) -> Account: ...

    def save(self, account: Account) -> None: ...

    def update_password(self, account: Account, hashed_password: str) -> None: ...

    def mark_verified(self, account: Account) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), unique=True),  # NULL for OAuth-created accounts
    Column("email", String(320), unique=True),  # NULL until the user supplies one
    Column("hashed_password", Text),  # NULL = no local password
    Column("display_name", String(255)),
    Column("verified", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clashing_field(exc: IntegrityError) -> str | None:
    # SQLite: "UNIQUE constraint failed: accounts.email"
    # Postgres: 'duplicate key value violates unique constraint "accounts_email_key"'
    message = str(exc.orig)
    for field in ("username", "email"):
        if f"accounts.{field}" in message or f"accounts_{field}_key" in message:
            return field
    return None


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        field = _clashing_field(exc)
        raise DuplicateAccountError(f"{operation}: duplicate {field or 'account'}", field=field) from exc
    except SQLAlchemyError as exc:
        logger.error("Credential store failure during %s: %s", operation, exc)
        raise CredentialStoreError(f"{operation} failed") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """SQLAlchemy Core implementation of CredentialStore.

    Usage:
        store = AccountStore("sqlite:///authgate.db")
        account = store.create("alice", hasher.hash("Secret1!"), email="alice@x.com")
        store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive)."""
        return self._find_one(_accounts.c.username == username, "find_by_username")

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email. Verified state is not filtered here."""
        return self._find_one(_accounts.c.email == email, "find_by_email")

    def find_by_id(self, account_id: int) -> Account | None:
        return self._find_one(_accounts.c.id == account_id, "find_by_id")

    def _find_one(self, clause, operation: str) -> Account | None:
        with _translate_errors(operation), self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(clause)).fetchone()
        return _row_to_account(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        username: str | None,
        hashed_password: str | None,
        email: str | None = None,
        verified: bool = False,
        display_name: str | None = None,
    ) -> Account:
        """Insert a new account and return it with id and timestamps filled in.

        Raises DuplicateAccountError if the username or email already exists,
        including when a concurrent request won the race.
        """
        now = _now_iso()
        with _translate_errors("create"), self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    username=username,
                    email=email,
                    hashed_password=hashed_password,
                    display_name=display_name,
                    verified=1 if verified else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            account_id = result.inserted_primary_key[0]
        return Account(
            id=account_id,
            username=username,
            email=email,
            hashed_password=hashed_password,
            display_name=display_name,
            verified=verified,
            created_at=now,
            updated_at=now,
        )

    def save(self, account: Account) -> None:
        """Persist the mutable profile fields (username, email, display_name).

        Password and verified state have their own dedicated methods and are
        deliberately not written here.
        """
        account.updated_at = _now_iso()
        self._update(
            account,
            "save",
            username=account.username,
            email=account.email,
            display_name=account.display_name,
            updated_at=account.updated_at,
        )

    def update_password(self, account: Account, hashed_password: str) -> None:
        account.hashed_password = hashed_password
        account.updated_at = _now_iso()
        self._update(account, "update_password", hashed_password=hashed_password, updated_at=account.updated_at)

    def mark_verified(self, account: Account) -> None:
        """Set verified = true. Idempotent: marking twice is not an error."""
        account.verified = True
        account.updated_at = _now_iso()
        self._update(account, "mark_verified", verified=1, updated_at=account.updated_at)

    def _update(self, account: Account, operation: str, **fields) -> None:
        if account.id is None:
            raise ValueError(f"{operation}: account has no id; create it first")
        with _translate_errors(operation), self.engine.connect() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account.id).values(**fields))
            conn.commit()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Credential store health check failed", exc_info=True)
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        display_name=row.display_name,
        verified=bool(row.verified),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
