"""
tests/test_user_store.py -- Unit tests for the credential store (UserStore).

Covers:
  - create(): normalized email, bcrypt hash stored, name optional
  - DuplicateEmail on exact and case/whitespace variants of an existing email
  - find_by_email() / get_by_id() lookups, None when absent
  - update_name(): bumps updated_at, UserNotFound for unknown ids
  - count() and recent() ordering
  - Concurrent registrations of one email: exactly one succeeds
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text

from auth.errors import DuplicateEmail, StoreTimeout, UserNotFound
from auth.store import UserStore, create_store_engine


class TestCreate:
    def test_create_normalizes_email_and_hashes(self, user_store: UserStore) -> None:
        user = user_store.create("  Alice@Example.COM ", "secret1", name="Alice")
        assert user.id > 0
        assert user.email == "alice@example.com"
        assert user.name == "Alice"
        assert user.password_hash != "secret1"
        assert user.password_hash.startswith("$2b$")

    def test_name_is_optional(self, user_store: UserStore) -> None:
        assert user_store.create("noname@example.com", "secret1").name is None

    def test_duplicate_email_rejected(self, user_store: UserStore) -> None:
        user_store.create("dup@example.com", "secret1")
        with pytest.raises(DuplicateEmail):
            user_store.create("dup@example.com", "other-password")

    def test_duplicate_detection_is_case_insensitive(self, user_store: UserStore) -> None:
        user_store.create("case@example.com", "secret1")
        with pytest.raises(DuplicateEmail):
            user_store.create(" CASE@Example.com", "secret1")
        assert user_store.count() == 1

    def test_verify_password(self, user_store: UserStore) -> None:
        user = user_store.create("pw@example.com", "secret1")
        assert user_store.verify_password(user, "secret1") is True
        assert user_store.verify_password(user, "Secret1") is False


class TestLookup:
    def test_find_by_email_normalizes_input(self, user_store: UserStore) -> None:
        created = user_store.create("find@example.com", "secret1", name="Finn")
        found = user_store.find_by_email("FIND@example.com ")
        assert found is not None
        assert found.id == created.id
        assert found.name == "Finn"

    def test_find_by_email_missing(self, user_store: UserStore) -> None:
        assert user_store.find_by_email("ghost@example.com") is None

    def test_get_by_id(self, user_store: UserStore) -> None:
        created = user_store.create("byid@example.com", "secret1")
        assert user_store.get_by_id(created.id).email == "byid@example.com"
        assert user_store.get_by_id(created.id + 1000) is None

    def test_timestamps_round_trip_as_aware_utc(self, user_store: UserStore) -> None:
        created = user_store.create("ts@example.com", "secret1")
        found = user_store.get_by_id(created.id)
        assert found.created_at == created.created_at
        assert found.created_at.utcoffset().total_seconds() == 0


class TestUpdateName:
    def test_update_name_bumps_updated_at(self, user_store: UserStore) -> None:
        created = user_store.create("upd@example.com", "secret1", name="Old")
        updated = user_store.update_name(created.id, "New Name")
        assert updated.name == "New Name"
        assert updated.updated_at >= created.updated_at
        assert updated.created_at == created.created_at

    def test_update_name_can_clear(self, user_store: UserStore) -> None:
        created = user_store.create("clear@example.com", "secret1", name="Someone")
        assert user_store.update_name(created.id, None).name is None

    def test_update_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(UserNotFound):
            user_store.update_name(424242, "Nobody")


class TestCountAndRecent:
    def test_count(self, user_store: UserStore) -> None:
        assert user_store.count() == 0
        user_store.create("c1@example.com", "secret1")
        user_store.create("c2@example.com", "secret1")
        assert user_store.count() == 2

    def test_recent_is_newest_first_and_limited(self, user_store: UserStore) -> None:
        for i in range(5):
            user_store.create(f"r{i}@example.com", "secret1")
        recent = user_store.recent(limit=3)
        assert [u.email for u in recent] == ["r4@example.com", "r3@example.com", "r2@example.com"]


class TestDeadline:
    def test_expired_deadline_raises_store_timeout(self, user_store: UserStore) -> None:
        with pytest.raises(StoreTimeout):
            user_store.find_by_email("a@example.com", deadline=time.monotonic() - 1)

    def test_generous_deadline_succeeds(self, user_store: UserStore) -> None:
        user = user_store.create("deadline@example.com", "secret1", deadline=time.monotonic() + 30)
        assert user_store.get_by_id(user.id, deadline=time.monotonic() + 30) is not None

    def test_running_statement_interrupted_at_deadline(self, user_store: UserStore) -> None:
        # Counts to 10^9 unless the connection aborts it at the deadline.
        slow = text(
            "WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n WHERE x < 1000000000) "
            "SELECT count(*) FROM n"
        )
        started = time.monotonic()
        with pytest.raises(StoreTimeout):
            with user_store._connect(deadline=started + 0.2) as conn:
                conn.execute(slow)
        assert time.monotonic() - started < 5

    def test_connection_disarmed_after_deadline_call(self, user_store: UserStore) -> None:
        user_store.count(deadline=time.monotonic() + 0.05)
        time.sleep(0.1)
        # The pooled connection must not keep the old deadline armed.
        with user_store._connect() as conn:
            total = conn.execute(
                text("WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n WHERE x < 100000) SELECT count(*) FROM n")
            ).scalar()
        assert total == 100000


def test_concurrent_registration_single_winner(tmp_path) -> None:
    """Racing registrations of one email: one succeeds, the rest are DuplicateEmail."""
    engine = create_store_engine(f"sqlite:///{tmp_path / 'race.db'}")
    store = UserStore(engine, bcrypt_rounds=4)

    def attempt(_: int) -> str:
        try:
            store.create("race@example.com", "secret1")
            return "created"
        except DuplicateEmail:
            return "duplicate"

    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(attempt, range(4)))
        assert outcomes.count("created") == 1
        assert outcomes.count("duplicate") == 3
        assert store.count() == 1
    finally:
        engine.dispose()
