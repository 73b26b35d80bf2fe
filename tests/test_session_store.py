"""
tests/test_session_store.py -- Unit tests for SessionStore.

Covers:
  - find_active_by_token(): joined (Session, User) for a live row
  - Rows at or past expires_at are invisible; unknown tokens return None
  - delete_by_token() is idempotent
  - count_active() and purge_expired()
  - UNIQUE token column: a duplicate insert is a StoreError
  - Deadlines: a passed deadline is StoreTimeout before any SQL runs
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import StoreError, StoreTimeout
from auth.models import User
from auth.store import SessionStore, UserStore

NOW = datetime(2030, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def user(user_store: UserStore) -> User:
    return user_store.create("owner@example.com", "secret1", name="Owner")


class TestFindActive:
    def test_live_session_joined_with_user(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "tok-live", NOW + timedelta(days=7))
        found = session_store.find_active_by_token("tok-live", NOW)
        assert found is not None
        session, owner = found
        assert session.user_id == user.id
        assert session.token == "tok-live"
        assert session.expires_at == NOW + timedelta(days=7)
        assert owner.email == "owner@example.com"
        assert owner.name == "Owner"

    def test_unknown_token(self, session_store: SessionStore) -> None:
        assert session_store.find_active_by_token("nope", NOW) is None

    def test_expired_session_is_invisible(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "tok-old", NOW - timedelta(seconds=1))
        assert session_store.find_active_by_token("tok-old", NOW) is None

    def test_expiry_boundary_is_exclusive(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "tok-edge", NOW)
        assert session_store.find_active_by_token("tok-edge", NOW) is None
        assert session_store.find_active_by_token("tok-edge", NOW - timedelta(microseconds=1)) is not None


class TestDelete:
    def test_delete_then_lookup(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "tok-del", NOW + timedelta(days=1))
        session_store.delete_by_token("tok-del")
        assert session_store.find_active_by_token("tok-del", NOW) is None

    def test_delete_is_idempotent(self, session_store: SessionStore) -> None:
        session_store.delete_by_token("never-existed")
        session_store.delete_by_token("never-existed")


class TestCountAndPurge:
    def test_count_active_ignores_expired(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "a", NOW + timedelta(hours=1))
        session_store.create(user.id, "b", NOW + timedelta(hours=2))
        session_store.create(user.id, "c", NOW - timedelta(hours=1))
        assert session_store.count_active(NOW) == 2

    def test_purge_removes_only_expired(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "keep", NOW + timedelta(hours=1))
        session_store.create(user.id, "drop1", NOW - timedelta(hours=1))
        session_store.create(user.id, "drop2", NOW)
        assert session_store.purge_expired(NOW) == 2
        assert session_store.find_active_by_token("keep", NOW) is not None
        assert session_store.purge_expired(NOW) == 0


class TestFailures:
    def test_duplicate_token_is_store_error(self, session_store: SessionStore, user: User) -> None:
        session_store.create(user.id, "same", NOW + timedelta(days=1))
        with pytest.raises(StoreError):
            session_store.create(user.id, "same", NOW + timedelta(days=2))

    def test_passed_deadline(self, session_store: SessionStore) -> None:
        with pytest.raises(StoreTimeout):
            session_store.find_active_by_token("x", NOW, deadline=time.monotonic() - 0.5)

    def test_store_timeout_is_a_store_error(self) -> None:
        assert issubclass(StoreTimeout, StoreError)

    def test_generous_deadline(self, session_store: SessionStore, user: User) -> None:
        deadline = time.monotonic() + 30
        session_store.create(user.id, "dl", NOW + timedelta(days=1), deadline=deadline)
        assert session_store.count_active(NOW, deadline=deadline) == 1
