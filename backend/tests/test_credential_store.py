"""
Tests for SqlAlchemyCredentialStore on an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from account_service.services.credential_store import (
    CredentialStoreError,
    DuplicateEmailError,
    SqlAlchemyCredentialStore,
)


@pytest.fixture
def store(db_session):
    return SqlAlchemyCredentialStore(db_session)


def test_create_and_find(store):
    created = store.create("alice", "alice@x.com", "hash")

    assert len(created.id) == 36
    assert store.find_by_email("alice@x.com") == created
    assert store.find_by_id(created.id) == created
    assert store.find_by_email("nobody@x.com") is None
    assert store.find_by_id("missing") is None


def test_record_repr_hides_hash(store):
    created = store.create("alice", "alice@x.com", "secret-hash-value")
    assert "secret-hash-value" not in repr(created)


def test_duplicate_email_raises_and_session_stays_usable(store):
    store.create("alice", "alice@x.com", "hash")

    with pytest.raises(DuplicateEmailError):
        store.create("mallory", "alice@x.com", "other")

    assert store.find_by_email("alice@x.com").username == "alice"
    assert store.create("bob", "bob@x.com", "hash").email == "bob@x.com"


def test_update_fields(store):
    created = store.create("alice", "alice@x.com", "hash")
    expiry = datetime.now(timezone.utc) + timedelta(minutes=5)

    updated = store.update(created.id, {"verification_code": "123456", "code_expiry": expiry})

    assert updated.verification_code == "123456"
    stored = store.find_by_id(created.id).code_expiry
    # SQLite drops the offset
    assert stored.replace(tzinfo=timezone.utc) == expiry


def test_update_missing_account(store):
    assert store.update("missing", {"username": "x"}) is None


def test_update_rejects_unknown_fields(store):
    created = store.create("alice", "alice@x.com", "hash")
    with pytest.raises(ValueError):
        store.update(created.id, {"id": "other"})


def test_update_to_taken_email_is_rolled_back(store):
    alice = store.create("alice", "alice@x.com", "hash")
    store.create("bob", "bob@x.com", "hash")

    with pytest.raises(DuplicateEmailError):
        store.update(alice.id, {"username": "alice2", "email": "bob@x.com"})

    again = store.find_by_id(alice.id)
    assert again.username == "alice"
    assert again.email == "alice@x.com"


def test_delete(store):
    created = store.create("alice", "alice@x.com", "hash")

    assert store.delete(created.id) is True
    assert store.find_by_id(created.id) is None
    assert store.delete(created.id) is False


def test_database_errors_are_wrapped(store, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(store.db, "query", broken_query)

    with pytest.raises(CredentialStoreError):
        store.find_by_email("alice@x.com")
    with pytest.raises(CredentialStoreError):
        store.update("any", {"username": "x"})
