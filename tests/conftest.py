"""
tests/conftest.py -- Shared test fixtures for the app server test suite.

This module provides:
  - FakeMailer / FakePush: in-memory transports that record calls
  - store: isolated in-memory CredentialStore per test
  - token_service: TokenService with a fixed test secret
  - api: TestClient harness with a patched lifespan, seeded users and tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API harness because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

JWT_SECRET must be set before api.main is imported, because api.main reads
Settings once at import time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

TEST_SECRET = "test-secret-for-the-app-server-suite-0123456789"

os.environ.setdefault("JWT_SECRET", TEST_SECRET)

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import NotificationPreference, User
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.config import Settings
from core.errors import MailTransportError
from notify.dispatcher import NotificationDispatcher

# ---------------------------------------------------------------------------
# Fake transports
# ---------------------------------------------------------------------------


@dataclass
class SentMail:
    to_email: str
    language: str
    payload: dict[str, Any]
    html: bool


class FakeMailer:
    """Records every send; raises MailTransportError when fail is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[SentMail] = []

    def send(self, to_email: str, language: str, payload: dict[str, Any], html: bool = True) -> None:
        self.sent.append(SentMail(to_email, language, dict(payload), html))
        if self.fail:
            raise MailTransportError("SMTP Error: connection refused")


class FakePush:
    def __init__(self, delivered: bool = True, error: Exception | None = None) -> None:
        self.delivered = delivered
        self.error = error
        self.calls: list[str] = []

    def send(self, user: User, preference: NotificationPreference, payload: dict[str, Any]) -> bool:
        self.calls.append(user.uuid)
        if self.error is not None:
            raise self.error
        return self.delivered


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def token_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def token_service(token_secret) -> TokenService:
    return TokenService(secret=token_secret)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


# ---------------------------------------------------------------------------
# API harness
# ---------------------------------------------------------------------------

ADMIN_UUID = "admin-0001"
MEMBER_UUID = "member-0001"


@dataclass
class ApiHarness:
    client: TestClient
    store: CredentialStore
    mailer: FakeMailer
    tokens: TokenService
    admin_token: str
    member_token: str
    extra: dict[str, Any] = field(default_factory=dict)

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


def _patch_lifespan(settings: Settings, store: CredentialStore, tokens: TokenService, mailer: FakeMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test services into app.state so TestClient routes see an
    isolated DB and a fake mail transport instead of a real SMTP server.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.store = store
        app.state.tokens = tokens
        app.state.mailer = mailer
        app.state.dispatcher = NotificationDispatcher(store, mailer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for HTTP integration tests.

    One harness per test module: the DB name includes the module name so
    modules never share rows. Tests inside a module use distinct uuids.
    """
    db_name = request.module.__name__.replace(".", "_")
    store = CredentialStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    store.upsert(User(ADMIN_UUID, "Admin", "admin@example.com"), NotificationPreference(ADMIN_UUID))
    store.upsert(User(MEMBER_UUID, "Member", "member@example.com"), NotificationPreference(MEMBER_UUID))

    tokens = TokenService(secret=TEST_SECRET)
    mailer = FakeMailer()
    settings = Settings(
        _env_file=None,
        server_admin_name="Server Admin",
        server_admin_email="server-admin@example.com",
    )
    app.router.lifespan_context = _patch_lifespan(settings, store, tokens, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(
            client=client,
            store=store,
            mailer=mailer,
            tokens=tokens,
            admin_token=tokens.issue(ADMIN_UUID, "admin@example.com", is_admin=True),
            member_token=tokens.issue(MEMBER_UUID, "member@example.com", is_admin=False),
        )

    store.close()
