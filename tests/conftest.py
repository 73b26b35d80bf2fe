"""
tests/conftest.py -- Shared test fixtures for Beresta ID.

This module provides:
  - FakeClock: a settable clock injected into AuthService so tests can move
    time past session expiry without sleeping
  - engine / user_store / session_store / codec / service: in-memory unit
    test wiring, rebuilt for every test
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format shares one in-memory instance
across all connections in the same process.

DEBUG, BCRYPT_ROUNDS and RATE_LIMIT_ENABLED must be set before any project
import: get_settings() is read at import time by api/ modules.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set these before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SESSION_PURGE_INTERVAL_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.service import AuthService
from auth.store import SessionStore, UserStore, create_store_engine
from auth.tokens import TokenCodec

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"


class FakeClock:
    """Callable clock returning a settable aware-UTC datetime."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit-test wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_store_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine, bcrypt_rounds=4)


@pytest.fixture
def session_store(engine: Engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(user_store: UserStore, session_store: SessionStore, codec: TokenCodec, clock: FakeClock) -> AuthService:
    return AuthService(user_store, session_store, codec, clock=clock)


# ---------------------------------------------------------------------------
# API wiring
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test AuthService into app.state so TestClient routes
    see an isolated test DB rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        app.state.purge_task = None
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[tuple[TestClient, AuthService, FakeClock], None, None]:
    """Yield (client, service, clock) for API integration tests.

    One TestClient and database per test module. Tests share state within a
    module, so each test registers its own email address.
    """
    db_name = f"test_auth_{request.module.__name__.rpartition('.')[2]}"
    eng = create_store_engine(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    clock = FakeClock()
    service = AuthService(UserStore(eng, bcrypt_rounds=4), SessionStore(eng), TokenCodec(TEST_SECRET), clock=clock)

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service, clock

    eng.dispose()
