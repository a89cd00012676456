"""
tests/conftest.py -- Shared test fixtures for CareCoord integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + care data
  - _patch_lifespan(): wires test stores and a mock mailer into app.state
  - api: module-scoped ApiEnv (TestClient + stores + mailer + user factory)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any app import: get_settings() is cached on first
call. Rate-limit counters are cleared before every test so each test starts
with the full login/register allowance.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set before any auth/core import (see module docstring).
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from care.store import CareStore

TEST_PASSWORD = "testpass123"

# Hashing is deliberately slow; hash once for every fixture-made user.
_TEST_HASH = hash_password(TEST_PASSWORD)

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, CareStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_carecoord_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), CareStore(db_url=url)


def _patch_lifespan(user_store: UserStore, care: CareStore, mailer: MagicMock):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.care = care
        app.state.mailer = mailer
        yield

    return test_lifespan


@dataclass
class ApiEnv:
    client: TestClient
    user_store: UserStore
    care: CareStore
    mailer: MagicMock
    password: str = TEST_PASSWORD

    def make_user(
        self,
        email: str,
        first_name: str = "Test",
        last_name: str = "User",
        confirmed: bool = True,
    ) -> tuple[int, dict[str, str]]:
        """Create a user directly in the store. Returns (user_id, auth headers)."""
        uid = self.user_store.create_user(
            User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                hashed_password=_TEST_HASH,
                is_confirmed=confirmed,
            )
        )
        token = create_access_token(user_id=uid, email=email, expire_seconds=3600)
        return uid, {"Authorization": f"Bearer {token}"}

    def mailed_token(self, marker: str) -> str:
        """Return the token from the link in the most recent mail.

        marker is the client route before the token, e.g. "/verify/" or "/join/".
        """
        _to, _subject, body = self.mailer.send.call_args.args
        return body.split(marker, 1)[1].split()[0]


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


# ---------------------------------------------------------------------------
# Module-scoped fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv backed by a database private to the test module."""
    user_store, care = _make_test_stores(request.module.__name__.replace(".", "_"))
    mailer = MagicMock()

    app.router.lifespan_context = _patch_lifespan(user_store, care, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(client=client, user_store=user_store, care=care, mailer=mailer)

    care.close()
    user_store.close()
