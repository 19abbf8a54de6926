"""Authorization grants and the caller-owned authorization record.

A grant is exactly one of three variants:

- ``NoGrant``: no authorization material at all.
- ``PendingCode``: an authorization code captured interactively but not yet
  exchanged at the token endpoint.
- ``Token``: a live access/refresh token pair with an absolute expiry.

Only a ``Token`` whose ``expires_at`` lies strictly in the future can produce a
bearer token. Every other case raises ``NoValidTokenError`` so that a stale or
absent token is never sent to the API.

``AuthorizationInfo`` bundles the current grant with the static client
credentials needed to derive a new one. The library hands it to the caller and
receives it back; persisting it is left entirely to the caller.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeAlias

from pysmarther.exceptions import DeserializeError, NoValidTokenError


__all__ = [
    "AuthorizationInfo",
    "Grant",
    "NoGrant",
    "PendingCode",
    "Token",
    "grant_from_dict",
    "grant_to_dict",
]

GRANT_TYPE_NONE = "none"
GRANT_TYPE_PENDING_CODE = "pending_code"
GRANT_TYPE_TOKEN = "token"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class NoGrant:
    """No authorization material; a handshake or refresh is required."""

    def is_valid(self, now: datetime | None = None) -> bool:
        """Return False, an empty grant is never usable."""
        return False

    def needs_refresh(self, now: datetime | None = None) -> bool:
        """Return True, an empty grant always needs new material."""
        return True

    def bearer_token(self, now: datetime | None = None) -> str:
        """Raise NoValidTokenError, there is no token to hand out."""
        msg = "No valid request token found: no authorization grant"
        raise NoValidTokenError(msg)


@dataclass(frozen=True)
class PendingCode:
    """Authorization code waiting to be exchanged at the token endpoint.

    Attributes:
        code: Authorization code delivered to the loopback callback.
        nonce: CSRF state the code was bound to, None when obtained out of band.
    """

    code: str = field(repr=False)
    nonce: str | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """Return False, a code cannot authorize API calls by itself."""
        return False

    def needs_refresh(self, now: datetime | None = None) -> bool:
        """Return True, a code must be exchanged before use."""
        return True

    def bearer_token(self, now: datetime | None = None) -> str:
        """Raise NoValidTokenError, the code has not been exchanged yet."""
        msg = "No valid request token found: authorization code not exchanged"
        raise NoValidTokenError(msg)


@dataclass(frozen=True)
class Token:
    """Live OAuth2 credential.

    Attributes:
        access_token: Bearer token for API requests.
        refresh_token: Token used to obtain a new access token.
        expires_at: Absolute, timezone-aware instant after which the access
            token must not be used.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_at: datetime

    def __post_init__(self) -> None:
        """Reject naive expiry instants, they cannot be compared safely."""
        if self.expires_at.tzinfo is None:
            msg = "Token.expires_at must be timezone-aware"
            raise ValueError(msg)

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check whether the access token may be used at ``now``.

        Args:
            now: Instant to check against. Defaults to the current UTC time.

        Returns:
            True if ``expires_at`` is strictly later than ``now``.
        """
        return self.expires_at > (now or _utcnow())

    def needs_refresh(self, now: datetime | None = None) -> bool:
        """Check whether the token has expired at ``now``."""
        return not self.is_valid(now)

    def bearer_token(self, now: datetime | None = None) -> str:
        """Return the access token if it is still valid.

        Args:
            now: Instant to check against. Defaults to the current UTC time.

        Returns:
            The access token.

        Raises:
            NoValidTokenError: If the token has expired.
        """
        if not self.is_valid(now):
            msg = "No valid request token found: access token expired"
            raise NoValidTokenError(msg)
        return self.access_token


Grant: TypeAlias = NoGrant | PendingCode | Token


@dataclass(frozen=True)
class AuthorizationInfo:
    """Current grant plus the static credentials needed to renew it.

    Attributes:
        client_id: OAuth2 client identifier.
        client_secret: OAuth2 client secret.
        subscription_key: API management subscription key sent with every call.
        grant: Current authorization material.
    """

    client_id: str
    client_secret: str = field(repr=False)
    subscription_key: str = field(repr=False)
    grant: Grant = field(default_factory=NoGrant)

    def is_refresh_needed(self, now: datetime | None = None) -> bool:
        """Check whether the grant must be exchanged before authenticated use."""
        return self.grant.needs_refresh(now)

    def with_grant(self, grant: Grant) -> AuthorizationInfo:
        """Return a copy of this record holding ``grant``."""
        return dataclasses.replace(self, grant=grant)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for caller-side storage."""
        return {
            "grant": grant_to_dict(self.grant),
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "subscription_key": self.subscription_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthorizationInfo:
        """Rebuild a record previously produced by ``to_dict``.

        Raises:
            DeserializeError: If required fields are missing or malformed.
        """
        try:
            return cls(
                client_id=data["client_id"],
                client_secret=data["client_secret"],
                subscription_key=data["subscription_key"],
                grant=grant_from_dict(data.get("grant") or {"type": GRANT_TYPE_NONE}),
            )
        except (KeyError, TypeError) as exc:
            msg = f"Invalid authorization info: {exc}"
            raise DeserializeError(msg) from exc


def grant_to_dict(grant: Grant) -> dict[str, Any]:
    """Serialize a grant to a tagged, JSON-compatible dict."""
    if isinstance(grant, Token):
        return {
            "type": GRANT_TYPE_TOKEN,
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token,
            "expires_at": grant.expires_at.astimezone(UTC).isoformat(),
        }
    if isinstance(grant, PendingCode):
        return {"type": GRANT_TYPE_PENDING_CODE, "code": grant.code, "nonce": grant.nonce}
    return {"type": GRANT_TYPE_NONE}


def grant_from_dict(data: dict[str, Any]) -> Grant:
    """Deserialize a grant produced by ``grant_to_dict``.

    Naive ``expires_at`` values are read as UTC.

    Raises:
        DeserializeError: If the grant type is unknown or fields are malformed.
    """
    grant_type = data.get("type")
    try:
        if grant_type == GRANT_TYPE_NONE:
            return NoGrant()
        if grant_type == GRANT_TYPE_PENDING_CODE:
            return PendingCode(code=data["code"], nonce=data.get("nonce"))
        if grant_type == GRANT_TYPE_TOKEN:
            expires_at = datetime.fromisoformat(data["expires_at"])
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)
            return Token(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_at=expires_at,
            )
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"Invalid {grant_type} grant: {exc}"
        raise DeserializeError(msg) from exc

    msg = f"Unknown grant type: {grant_type!r}"
    raise DeserializeError(msg)
