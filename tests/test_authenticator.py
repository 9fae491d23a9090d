"""Unit tests for auth/authenticator.py -- token resolution and role gating."""

from __future__ import annotations

import pytest

from auth.authenticator import Authenticator, authorize, extract_bearer
from auth.errors import (
    AccountDeactivated,
    ExpiredToken,
    Forbidden,
    InvalidToken,
    Unauthenticated,
    WrongTokenPurpose,
)
from auth.models import Role, TokenPurpose


@pytest.fixture
def authenticator(store, codec) -> Authenticator:
    return Authenticator(store, codec)


class TestAuthenticate:
    def test_valid_access_token_returns_record(self, authenticator, codec, make_user) -> None:
        user = make_user("a@x.com")
        record = authenticator.authenticate(codec.issue(user.id))
        assert record.id == user.id

    def test_missing_token_is_unauthenticated(self, authenticator) -> None:
        with pytest.raises(Unauthenticated):
            authenticator.authenticate(None)
        with pytest.raises(Unauthenticated):
            authenticator.authenticate("")

    def test_garbage_token_is_invalid(self, authenticator) -> None:
        with pytest.raises(InvalidToken):
            authenticator.authenticate("garbage")

    def test_refresh_token_is_refused(self, authenticator, codec, make_user) -> None:
        user = make_user("a@x.com")
        with pytest.raises(WrongTokenPurpose):
            authenticator.authenticate(codec.issue(user.id, TokenPurpose.refresh))

    def test_expired_token(self, authenticator, codec, clock, make_user) -> None:
        token = codec.issue(make_user("a@x.com").id)
        clock.advance(hours=1)
        with pytest.raises(ExpiredToken):
            authenticator.authenticate(token)

    def test_deleted_account_looks_unauthenticated(self, authenticator, codec, store, make_user) -> None:
        user = make_user("a@x.com")
        token = codec.issue(user.id)
        store.delete_user(user.id)
        with pytest.raises(Unauthenticated):
            authenticator.authenticate(token)

    def test_deactivated_account(self, authenticator, codec, make_user) -> None:
        user = make_user("a@x.com", is_active=False)
        with pytest.raises(AccountDeactivated):
            authenticator.authenticate(codec.issue(user.id))

    def test_optional_never_raises(self, authenticator, codec, make_user) -> None:
        user = make_user("a@x.com")
        assert authenticator.authenticate_optional(None) is None
        assert authenticator.authenticate_optional("garbage") is None
        assert authenticator.authenticate_optional(codec.issue(user.id)).id == user.id


class TestAuthorize:
    def test_matching_role_passes(self, make_user) -> None:
        admin = make_user("admin@x.com", role=Role.admin)
        assert authorize(admin, Role.admin) is admin

    def test_role_mismatch_is_forbidden(self, make_user) -> None:
        with pytest.raises(Forbidden):
            authorize(make_user("a@x.com"), Role.admin)

    def test_admin_does_not_satisfy_user_role(self, make_user) -> None:
        with pytest.raises(Forbidden):
            authorize(make_user("admin@x.com", role=Role.admin), Role.user)

    def test_missing_record_is_a_programming_error(self) -> None:
        with pytest.raises(RuntimeError):
            authorize(None, Role.admin)


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", "abc"),
        ("Basic dXNlcjpwYXNz", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header, expected) -> None:
    assert extract_bearer(header) == expected
