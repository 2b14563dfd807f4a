"""Unit tests for auth/store.py -- AccountStore on an in-memory SQLite DB.

Covers:
- create() returns a populated Account; find_by_* round-trips it
- username and email uniqueness -> DuplicateAccountError with the field named
- NULL usernames / emails do not collide
- update_password, mark_verified (idempotent) and save persist their fields
- database failures surface as CredentialStoreError
"""

import pytest

from auth.errors import CredentialStoreError, DuplicateAccountError
from auth.models import Account
from auth.store import AccountStore


def test_create_returns_unverified_account(store: AccountStore) -> None:
    account = store.create("alice", "hash-1", email="alice@x.com")
    assert account.id is not None
    assert account.verified is False
    assert account.created_at and account.updated_at


def test_find_by_username_and_email(store: AccountStore) -> None:
    created = store.create("alice", "hash-1", email="alice@x.com")
    assert store.find_by_username("alice") == created
    assert store.find_by_email("alice@x.com") == created
    assert store.find_by_id(created.id) == created


def test_find_misses_return_none(store: AccountStore) -> None:
    assert store.find_by_username("nobody") is None
    assert store.find_by_email("nobody@x.com") is None
    assert store.find_by_id(999) is None


def test_username_is_case_sensitive(store: AccountStore) -> None:
    store.create("alice", "hash-1")
    assert store.find_by_username("Alice") is None


def test_duplicate_username_raises(store: AccountStore) -> None:
    store.create("alice", "hash-1")
    with pytest.raises(DuplicateAccountError) as excinfo:
        store.create("alice", "hash-2")
    assert excinfo.value.field == "username"


def test_duplicate_email_raises(store: AccountStore) -> None:
    store.create("alice", "hash-1", email="shared@x.com")
    with pytest.raises(DuplicateAccountError) as excinfo:
        store.create("bob", "hash-2", email="shared@x.com")
    assert excinfo.value.field == "email"


def test_absent_usernames_and_emails_do_not_collide(store: AccountStore) -> None:
    store.create("alice", "hash-1")
    store.create("bob", "hash-2")
    store.create(None, None, email="carol@x.com", verified=True)
    store.create(None, None, email="dave@x.com", verified=True)
    assert store.find_by_email("dave@x.com").username is None


def test_update_password_persists(store: AccountStore) -> None:
    account = store.create("alice", "old-hash")
    store.update_password(account, "new-hash")
    assert account.hashed_password == "new-hash"
    assert store.find_by_username("alice").hashed_password == "new-hash"


def test_mark_verified_is_idempotent(store: AccountStore) -> None:
    account = store.create("alice", "hash", email="alice@x.com")
    store.mark_verified(account)
    store.mark_verified(account)
    assert store.find_by_email("alice@x.com").verified is True


def test_save_persists_profile_fields_only(store: AccountStore) -> None:
    account = store.create("alice", "hash")
    account.email = "alice@x.com"
    account.display_name = "Alice"
    account.verified = True  # not written by save()
    account.hashed_password = "tampered"  # not written by save()
    store.save(account)

    reloaded = store.find_by_username("alice")
    assert reloaded.email == "alice@x.com"
    assert reloaded.display_name == "Alice"
    assert reloaded.verified is False
    assert reloaded.hashed_password == "hash"


def test_save_to_taken_email_raises(store: AccountStore) -> None:
    store.create("alice", "hash", email="alice@x.com")
    bob = store.create("bob", "hash")
    bob.email = "alice@x.com"
    with pytest.raises(DuplicateAccountError):
        store.save(bob)


def test_update_without_id_is_refused(store: AccountStore) -> None:
    with pytest.raises(ValueError):
        store.mark_verified(Account(username="ghost"))


def test_ping(store: AccountStore) -> None:
    assert store.ping() is True


def test_database_failure_is_a_store_error(store: AccountStore) -> None:
    with store.engine.connect() as conn:
        conn.exec_driver_sql("DROP TABLE accounts")
        conn.commit()
    with pytest.raises(CredentialStoreError):
        store.find_by_username("alice")
