"""Tests for authorization grants and AuthorizationInfo."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from pysmarther.exceptions import DeserializeError, NoValidTokenError
from pysmarther.grant import (
    AuthorizationInfo,
    NoGrant,
    PendingCode,
    Token,
    grant_from_dict,
    grant_to_dict,
)


NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def _token(expires_at: datetime) -> Token:
    return Token(access_token="access", refresh_token="refresh", expires_at=expires_at)


class TestTokenValidity:
    """Test validity decisions for the Token variant."""

    def test_valid_one_second_before_expiry(self) -> None:
        """Test a token is valid at expires_at - 1s."""
        token = _token(NOW + timedelta(seconds=1))
        assert token.is_valid(NOW) is True
        assert token.needs_refresh(NOW) is False

    def test_invalid_at_expiry(self) -> None:
        """Test a token is not valid at exactly expires_at."""
        token = _token(NOW)
        assert token.is_valid(NOW) is False
        assert token.needs_refresh(NOW) is True

    def test_invalid_after_expiry(self) -> None:
        """Test a token is not valid after expires_at."""
        token = _token(NOW - timedelta(seconds=1))
        assert token.is_valid(NOW) is False
        assert token.needs_refresh(NOW) is True

    def test_defaults_to_current_time(self, valid_token: Token, expired_token: Token) -> None:
        """Test that omitting now compares against the current time."""
        assert valid_token.is_valid() is True
        assert expired_token.is_valid() is False

    def test_compares_across_timezones(self) -> None:
        """Test expiry instants in other timezones are compared as instants."""
        plus_two = timezone(timedelta(hours=2))
        token = _token(datetime(2024, 1, 1, 14, 0, 1, tzinfo=plus_two))
        assert token.is_valid(NOW) is True

    def test_naive_expiry_rejected(self) -> None:
        """Test that a naive expires_at is refused."""
        with pytest.raises(ValueError, match="timezone-aware"):
            _token(datetime(2024, 1, 1, 12, 0, 0))  # noqa: DTZ001


class TestBearerToken:
    """Test bearer_token for every grant variant."""

    def test_valid_token_returns_access_token(self) -> None:
        """Test a valid token hands out its access token."""
        token = _token(NOW + timedelta(minutes=5))
        assert token.bearer_token(NOW) == "access"

    def test_expired_token_raises(self) -> None:
        """Test an expired token never hands out its access token."""
        token = _token(NOW - timedelta(seconds=1))
        with pytest.raises(NoValidTokenError, match="expired"):
            token.bearer_token(NOW)

    def test_token_at_expiry_raises(self) -> None:
        """Test the boundary instant is treated as expired."""
        with pytest.raises(NoValidTokenError):
            _token(NOW).bearer_token(NOW)

    def test_no_grant_raises(self) -> None:
        """Test NoGrant has no bearer token."""
        with pytest.raises(NoValidTokenError):
            NoGrant().bearer_token(NOW)

    def test_pending_code_raises(self) -> None:
        """Test PendingCode has no bearer token."""
        with pytest.raises(NoValidTokenError, match="not exchanged"):
            PendingCode(code="abc", nonce="n1").bearer_token(NOW)


class TestNonTokenVariants:
    """Test validity decisions for NoGrant and PendingCode."""

    @pytest.mark.parametrize("grant", [NoGrant(), PendingCode(code="abc"), PendingCode(code="abc", nonce="n1")])
    def test_never_valid_always_needs_refresh(self, grant: NoGrant | PendingCode) -> None:
        """Test non-token grants are never usable."""
        assert grant.is_valid(NOW) is False
        assert grant.needs_refresh(NOW) is True

    def test_secrets_hidden_from_repr(self) -> None:
        """Test codes and tokens do not leak through repr."""
        assert "secret-code" not in repr(PendingCode(code="secret-code"))
        token = Token(access_token="secret-access", refresh_token="secret-refresh", expires_at=NOW)
        assert "secret-access" not in repr(token)
        assert "secret-refresh" not in repr(token)


class TestAuthorizationInfo:
    """Test the caller-owned authorization record."""

    def test_defaults_to_no_grant(self, auth_info: AuthorizationInfo) -> None:
        """Test a fresh record holds NoGrant."""
        assert isinstance(auth_info.grant, NoGrant)
        assert auth_info.is_refresh_needed() is True

    def test_with_grant_returns_copy(self, auth_info: AuthorizationInfo, valid_token: Token) -> None:
        """Test with_grant leaves the original untouched."""
        updated = auth_info.with_grant(valid_token)

        assert updated.grant is valid_token
        assert updated.client_id == auth_info.client_id
        assert isinstance(auth_info.grant, NoGrant)
        assert updated.is_refresh_needed() is False

    def test_secret_hidden_from_repr(self, auth_info: AuthorizationInfo) -> None:
        """Test the client secret does not leak through repr."""
        assert "test-secret" not in repr(auth_info)

    def test_to_dict_with_token(self, auth_info: AuthorizationInfo) -> None:
        """Test serializing a record holding a token."""
        info = auth_info.with_grant(_token(NOW))

        assert info.to_dict() == {
            "grant": {
                "type": "token",
                "access_token": "access",
                "refresh_token": "refresh",
                "expires_at": "2024-01-01T12:00:00+00:00",
            },
            "client_id": "test-client",
            "client_secret": "test-secret",
            "subscription_key": "test-subscription",
        }

    def test_from_dict_restores_token(self, auth_info: AuthorizationInfo) -> None:
        """Test a serialized record comes back equal."""
        info = auth_info.with_grant(_token(NOW))
        assert AuthorizationInfo.from_dict(info.to_dict()) == info

    def test_from_dict_without_grant(self) -> None:
        """Test a record saved without a grant loads as NoGrant."""
        info = AuthorizationInfo.from_dict({"client_id": "id", "client_secret": "secret", "subscription_key": "key"})
        assert isinstance(info.grant, NoGrant)

    def test_from_dict_missing_field(self) -> None:
        """Test a record missing credentials is rejected."""
        with pytest.raises(DeserializeError, match="client_secret"):
            AuthorizationInfo.from_dict({"client_id": "id", "subscription_key": "key"})


class TestGrantDict:
    """Test tagged grant serialization."""

    def test_pending_code(self) -> None:
        """Test PendingCode keeps its nonce."""
        data = grant_to_dict(PendingCode(code="abc", nonce="n1"))
        assert data == {"type": "pending_code", "code": "abc", "nonce": "n1"}
        assert grant_from_dict(data) == PendingCode(code="abc", nonce="n1")

    def test_no_grant(self) -> None:
        """Test NoGrant serializes to its tag only."""
        assert grant_to_dict(NoGrant()) == {"type": "none"}
        assert grant_from_dict({"type": "none"}) == NoGrant()

    def test_naive_expiry_read_as_utc(self) -> None:
        """Test a naive saved expiry is interpreted as UTC."""
        grant = grant_from_dict(
            {"type": "token", "access_token": "a", "refresh_token": "r", "expires_at": "2024-01-01T12:00:00"}
        )
        assert isinstance(grant, Token)
        assert grant.expires_at == NOW

    def test_unknown_type(self) -> None:
        """Test an unknown grant tag is rejected."""
        with pytest.raises(DeserializeError, match="Unknown grant type"):
            grant_from_dict({"type": "jwt"})

    def test_bad_expiry(self) -> None:
        """Test an unparsable expiry is rejected."""
        with pytest.raises(DeserializeError):
            grant_from_dict({"type": "token", "access_token": "a", "refresh_token": "r", "expires_at": "soon"})
