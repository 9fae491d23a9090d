"""Unit tests for auth/action_tokens.py -- single-use verification/reset tokens."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone

from auth.action_tokens import ActionTokenGenerator


def test_tokens_are_url_safe_with_32_bytes_of_entropy(action_tokens: ActionTokenGenerator) -> None:
    token = action_tokens.generate()
    assert all(c.isalnum() or c in "-_" for c in token)
    raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
    assert len(raw) == 32


def test_tokens_are_unique(action_tokens: ActionTokenGenerator) -> None:
    assert len({action_tokens.generate() for _ in range(100)}) == 100


def test_digest_is_deterministic_and_hides_token(action_tokens: ActionTokenGenerator) -> None:
    token = action_tokens.generate()
    assert action_tokens.digest(token) == action_tokens.digest(token)
    assert token not in action_tokens.digest(token)
    assert len(action_tokens.digest(token)) == 64


def test_digest_depends_on_secret() -> None:
    a = ActionTokenGenerator("secret-a-0123456789abcdef0123456789abcdef")
    b = ActionTokenGenerator("secret-b-0123456789abcdef0123456789abcdef")
    assert a.digest("same-token") != b.digest("same-token")


def test_reset_expiry_is_one_hour(action_tokens: ActionTokenGenerator) -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert action_tokens.reset_expiry(now) == now + timedelta(hours=1)


def test_random_source_is_injectable() -> None:
    gen = ActionTokenGenerator("secret-0123456789abcdef0123456789abcdef", random_source=lambda n: f"fixed-{n}")
    assert gen.generate() == "fixed-32"
