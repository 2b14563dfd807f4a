"""
tests/conftest.py -- Shared test fixtures for authgate.

This module provides:
  - RecordingDispatcher: NotificationDispatcher double that keeps sent messages
  - store / hasher / tokens / outbox / service: unit-level core wiring
  - api_client: TestClient with a patched lifespan and an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

DEBUG, BCRYPT_ROUNDS and ALLOWED_HOSTS must be set before any api/ import:
api.main reads get_settings() at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

# CRITICAL: set before importing api/ or core/.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("APP_BASE_URL", "https://app.example.com")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_app_state
from auth.errors import DeliveryError
from auth.notifications import Message
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenService
from core.config import get_settings

TEST_SECRET = "test-secret-key-with-at-least-32-characters"


class RecordingDispatcher:
    """Keeps every message instead of sending it. Set fail=True to simulate an outage."""

    def __init__(self) -> None:
        self.sent: list[Message] = []
        self.fail = False

    def send(self, message: Message) -> None:
        if self.fail:
            raise DeliveryError("simulated outage")
        self.sent.append(message)

    def last_token(self) -> str:
        """Pull the token query parameter out of the most recent message's link."""
        for line in self.sent[-1].body.splitlines():
            if "token=" in line:
                return parse_qs(urlparse(line.strip()).query)["token"][0]
        raise AssertionError("no link with a token in the last message")


# ---------------------------------------------------------------------------
# Unit-level fixtures -- a real AccountStore on an in-memory DB
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        secret_key=TEST_SECRET,
        session_expire_seconds=3600,
        reset_expire_seconds=900,
        verification_expire_seconds=86400,
    )


@pytest.fixture
def tokens(token_config: TokenConfig) -> TokenService:
    return TokenService(token_config)


@pytest.fixture
def outbox() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def service(store, hasher, tokens, outbox) -> AuthService:
    return AuthService(store, hasher, tokens, outbox, base_url="https://app.example.com/")


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, outbox: RecordingDispatcher):
    """Return an async context manager that replaces the real lifespan.

    Wires the isolated store and the recording dispatcher through the same
    wire_app_state() the real lifespan uses. The OAuth registry is a mock so
    no provider metadata is fetched.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_app_state(app, get_settings(), store, outbox)
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, RecordingDispatcher], None, None]:
    """Yield (client, outbox) for API integration tests.

    Rate limiting is switched off: a module's worth of logins from the same
    test client address would otherwise trip the 10/minute limit.
    """
    store = AccountStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    outbox = RecordingDispatcher()
    app.router.lifespan_context = _patch_lifespan(store, outbox)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, outbox

    limiter.enabled = True
    store.close()
