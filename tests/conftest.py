"""
tests/conftest.py -- Shared test fixtures for the storefront auth service.

This module provides:
  - FrozenClock: a settable Clock so expiry tests never sleep
  - RecordingMailer: captures every (kind, email, token) instead of sending,
    and can be told to fail specific message kinds
  - store / clock / mailer / throttle / codec / flows: unit-level fixtures
  - harness: a TestClient on the real FastAPI app whose lifespan is patched
    to wire the fixtures above into app.state via init_auth_state()

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each store gets a uuid-suffixed name so tests never share rows.

The DEBUG env var must be set before any app import so get_settings()
auto-generates SECRET_KEY instead of leaving it empty.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, init_auth_state
from auth.action_tokens import ActionTokenGenerator
from auth.flows import AccountFlows
from auth.mailer import MessageKind
from auth.models import CredentialRecord, Role, TokenPurpose
from auth.passwords import hash_password
from auth.store import UserStore
from auth.throttle import LoginThrottle
from auth.tokens import TokenCodec
from core.config import get_settings

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789abcdef"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime.now(timezone.utc).replace(microsecond=0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current += timedelta(**delta)


@dataclass
class SentMessage:
    kind: MessageKind
    email: str
    token: str


@dataclass
class RecordingMailer:
    sent: list[SentMessage] = field(default_factory=list)
    failing: set[MessageKind] = field(default_factory=set)

    def send(self, recipient: CredentialRecord, kind: MessageKind, token: str) -> bool:
        if kind in self.failing:
            return False
        self.sent.append(SentMessage(kind=kind, email=recipient.email, token=token))
        return True

    def last_token(self, kind: MessageKind) -> str:
        for message in reversed(self.sent):
            if message.kind is kind:
                return message.token
        raise AssertionError(f"no {kind.value} message was sent")


@dataclass
class Harness:
    client: TestClient
    store: UserStore
    clock: FrozenClock
    mailer: RecordingMailer
    throttle: LoginThrottle

    def create_user(
        self,
        email: str,
        password: str = "Passw0rd",
        role: Role = Role.user,
        is_active: bool = True,
    ) -> CredentialRecord:
        return _create_user(self.store, email, password, role, is_active)

    def token_for(self, record: CredentialRecord, purpose: TokenPurpose = TokenPurpose.access) -> str:
        return self.client.app.state.token_codec.issue(record.id, purpose)

    def auth_headers(self, record: CredentialRecord) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(record)}"}


def _create_user(
    store: UserStore,
    email: str,
    password: str = "Passw0rd",
    role: Role = Role.user,
    is_active: bool = True,
) -> CredentialRecord:
    record = CredentialRecord(
        email=email,
        password_hash=hash_password(password),
        first_name="Test",
        last_name="User",
        role=role,
        is_active=is_active,
    )
    store.create_user(record)
    return record


def _memory_db_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(db_url=_memory_db_url())
    yield s
    s.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def throttle(clock: FrozenClock) -> LoginThrottle:
    return LoginThrottle("10/15 minutes", clock=clock)


@pytest.fixture
def codec(clock: FrozenClock) -> TokenCodec:
    return TokenCodec(TEST_SECRET, access_expire_seconds=3600, clock=clock)


@pytest.fixture
def action_tokens() -> ActionTokenGenerator:
    return ActionTokenGenerator(TEST_SECRET)


@pytest.fixture
def flows(
    store: UserStore,
    codec: TokenCodec,
    action_tokens: ActionTokenGenerator,
    mailer: RecordingMailer,
    clock: FrozenClock,
) -> AccountFlows:
    return AccountFlows(store, codec, action_tokens, mailer, clock)


@pytest.fixture
def make_user(store: UserStore):
    """Factory fixture: make_user("a@x.com", role=Role.admin) -> persisted record."""

    def factory(email: str, password: str = "Passw0rd", role: Role = Role.user, is_active: bool = True):
        return _create_user(store, email, password, role, is_active)

    return factory


# ---------------------------------------------------------------------------
# HTTP fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, clock: FrozenClock, mailer: RecordingMailer, throttle: LoginThrottle):
    """Return a lifespan that wires test collaborators instead of the real ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        init_auth_state(app, get_settings(), store, clock=clock, mailer=mailer, login_throttle=throttle)
        yield

    return test_lifespan


@pytest.fixture
def harness(
    store: UserStore,
    clock: FrozenClock,
    mailer: RecordingMailer,
    throttle: LoginThrottle,
) -> Generator[Harness, None, None]:
    """Yield a Harness around a TestClient with isolated state per test.

    The general slowapi limiter is process-wide, so its counters are reset
    here to keep one test's traffic from throttling the next.
    """
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(store, clock, mailer, throttle)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield Harness(client=client, store=store, clock=clock, mailer=mailer, throttle=throttle)
