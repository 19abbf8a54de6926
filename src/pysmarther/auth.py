"""Credential exchange against the Smarther OAuth2 token endpoint."""

from __future__ import annotations

import json
import logging
import math
from datetime import UTC, datetime, timedelta
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from pysmarther.const import (
    DEFAULT_TIMEOUT,
    DEFAULT_TOKEN_URL,
    GRANT_TYPE_AUTHORIZATION_CODE,
    GRANT_TYPE_REFRESH_TOKEN,
)
from pysmarther.exceptions import (
    DeserializeError,
    SmartherConnectionError,
    SmartherTimeoutError,
    TokenEndpointError,
    UnsupportedGrantError,
)
from pysmarther.grant import PendingCode, Token


if TYPE_CHECKING:
    from types import TracebackType

    from pysmarther.grant import AuthorizationInfo, Grant

_LOGGER = logging.getLogger(__name__)


def build_token_request(grant: Grant, client_id: str, client_secret: str) -> dict[str, str]:
    """Build the form body for a token endpoint request.

    Args:
        grant: Grant to exchange. A ``PendingCode`` yields an
            ``authorization_code`` request, a ``Token`` yields a
            ``refresh_token`` request.
        client_id: OAuth2 client identifier.
        client_secret: OAuth2 client secret.

    Returns:
        Form fields for the POST body.

    Raises:
        UnsupportedGrantError: If the grant cannot be exchanged.
    """
    if isinstance(grant, PendingCode):
        return {
            "grant_type": GRANT_TYPE_AUTHORIZATION_CODE,
            "client_id": client_id,
            "client_secret": client_secret,
            "code": grant.code,
        }

    if isinstance(grant, Token):
        return {
            "grant_type": GRANT_TYPE_REFRESH_TOKEN,
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": grant.refresh_token,
        }

    msg = f"Unsupported grant type: {type(grant).__name__}"
    raise UnsupportedGrantError(msg)


def _parse_expires_in(value: Any) -> float:
    # Some gateways send the lifetime as a numeric string
    if isinstance(value, bool):
        msg = "expires_in must be a number of seconds"
        raise DeserializeError(msg)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            msg = f"expires_in must be a positive number of seconds, got {value!r}"
            raise DeserializeError(msg) from exc
    if not isinstance(value, int | float):
        msg = f"expires_in must be a positive number of seconds, got {value!r}"
        raise DeserializeError(msg)
    try:
        seconds = float(value)
    except OverflowError as exc:
        msg = "expires_in is out of range"
        raise DeserializeError(msg) from exc
    if not math.isfinite(seconds) or seconds <= 0:
        msg = f"expires_in must be a positive number of seconds, got {value!r}"
        raise DeserializeError(msg)
    return seconds


def parse_token_response(body: str | bytes, observed_at: datetime, previous: Grant | None = None) -> Token:
    """Turn a token endpoint response body into a ``Token`` grant.

    The expiry is anchored to ``observed_at``, the local time at which the
    response was received. Absolute timestamps sent by the server
    (``expires_on``) are ignored.

    Args:
        body: Raw response body. Bytes are decoded as UTF-8.
        observed_at: Local UTC time at which the response arrived.
        previous: Grant that was exchanged. When it is a ``Token`` and the
            response omits ``refresh_token``, the previous refresh token is kept.

    Returns:
        A new ``Token`` grant.

    Raises:
        DeserializeError: If the body is not a JSON object with the expected fields.
    """
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Token endpoint response is not valid UTF-8: {exc}"
            raise DeserializeError(msg) from exc

    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON response from token endpoint: {exc}"
        raise DeserializeError(msg) from exc

    if not isinstance(data, dict):
        msg = "Token response is not a JSON object"
        raise DeserializeError(msg)

    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        msg = "Missing access token in token response"
        raise DeserializeError(msg)

    refresh_token = data.get("refresh_token")
    if refresh_token is None and isinstance(previous, Token):
        refresh_token = previous.refresh_token
    if not isinstance(refresh_token, str) or not refresh_token:
        msg = "Missing refresh token in token response"
        raise DeserializeError(msg)

    if "expires_in" not in data:
        msg = "Missing expires_in in token response"
        raise DeserializeError(msg)
    expires_in = _parse_expires_in(data["expires_in"])

    try:
        expires_at = observed_at + timedelta(seconds=expires_in)
    except OverflowError as exc:
        msg = "expires_in is out of range"
        raise DeserializeError(msg) from exc

    return Token(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)


class CredentialExchanger:
    """Exchange authorization codes and refresh tokens for fresh credentials.

    Each call to ``exchange`` issues exactly one request to the token endpoint
    and returns a new grant. Inputs are never mutated and nothing is retried;
    storing the returned grant is up to the caller.

    Example:
        ```python
        async with CredentialExchanger() as exchanger:
            token = await exchanger.exchange(
                PendingCode(code="abc"), client_id="id", client_secret="secret"
            )
        ```

    Attributes:
        token_url: Token endpoint URL.
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        *,
        session: ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the exchanger.

        Args:
            token_url: Token endpoint URL. Defaults to the Legrand partner login.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            timeout: Total request timeout in seconds.
        """
        self.token_url = token_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

    def set_session(self, session: ClientSession) -> None:
        """Set the aiohttp session for this exchanger.

        The exchanger will not take ownership and will not close this session.

        Args:
            session: The aiohttp ClientSession to use for requests.
        """
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> CredentialExchanger:
        """Enter the context manager, creating a session if none was given."""
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if it was created here."""
        if self._owns_session and self._session is not None:
            await self._session.close()

    def _validate_session(self) -> ClientSession:
        """Validate that the session is initialized and open.

        Raises:
            RuntimeError: If session is not initialized or is closed.
        """
        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self._session.closed:
            msg = "Session is closed. Cannot make requests."
            raise RuntimeError(msg)

        return self._session

    async def exchange(self, grant: Grant, client_id: str, client_secret: str) -> Token:
        """Exchange a grant at the token endpoint.

        Args:
            grant: ``PendingCode`` (authorization_code grant) or ``Token``
                (refresh_token grant).
            client_id: OAuth2 client identifier.
            client_secret: OAuth2 client secret.

        Returns:
            A new ``Token`` grant whose expiry is anchored to local time.

        Raises:
            UnsupportedGrantError: If the grant cannot be exchanged. No request is made.
            TokenEndpointError: If the endpoint answers with a non-200 status.
            DeserializeError: If the response body is malformed.
            SmartherTimeoutError: If the request times out.
            SmartherConnectionError: If a connection error occurs.
            RuntimeError: If the session is not initialized or closed.
        """
        form = build_token_request(grant, client_id, client_secret)
        session = self._validate_session()
        timeout = ClientTimeout(total=self._timeout)

        _LOGGER.debug("Requesting %s grant from %s", form["grant_type"], self.token_url)

        try:
            async with session.post(self.token_url, data=form, timeout=timeout) as response:
                if response.status != HTTPStatus.OK:
                    _LOGGER.debug("Token endpoint returned status %d", response.status)
                    raise TokenEndpointError(response.status)

                observed_at = datetime.now(UTC)
                body = await response.read()

        except TimeoutError as exc:
            msg = "Token request timed out"
            raise SmartherTimeoutError(msg) from exc

        except ClientError as exc:
            msg = f"Failed to connect to token endpoint: {exc}"
            raise SmartherConnectionError(msg) from exc

        token = parse_token_response(body, observed_at, previous=grant)
        _LOGGER.info("Token exchange successful, access token valid until %s", token.expires_at.isoformat())
        return token

    async def exchange_info(self, info: AuthorizationInfo) -> AuthorizationInfo:
        """Exchange the grant held by ``info`` and return an updated copy.

        Raises:
            Same as ``exchange``.
        """
        token = await self.exchange(info.grant, info.client_id, info.client_secret)
        return info.with_grant(token)
