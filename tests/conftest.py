"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import ClientSession

from pysmarther.grant import AuthorizationInfo, Token


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture
async def mock_session() -> AsyncGenerator[ClientSession]:
    """Create a mock aiohttp ClientSession.

    Yields:
        Mock ClientSession for testing.
    """
    session = AsyncMock(spec=ClientSession)
    session.closed = False

    async def mock_close() -> None:
        session.closed = True

    session.close = mock_close

    yield session

    if not session.closed:
        await session.close()


@pytest.fixture
def mock_response() -> MagicMock:
    """Create a mock aiohttp ClientResponse usable as an async context manager.

    Returns:
        Mock ClientResponse for testing.
    """
    response = MagicMock()
    response.status = 200
    response.headers = {}
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


@pytest.fixture
def valid_token() -> Token:
    """Create a token valid for the next hour."""
    return Token(
        access_token="access-123",
        refresh_token="refresh-123",
        expires_at=datetime.now(UTC) + timedelta(hours=1),
    )


@pytest.fixture
def expired_token() -> Token:
    """Create a token that expired a second ago."""
    return Token(
        access_token="stale-access",
        refresh_token="refresh-123",
        expires_at=datetime.now(UTC) - timedelta(seconds=1),
    )


@pytest.fixture
def auth_info() -> AuthorizationInfo:
    """Create an authorization record without any grant."""
    return AuthorizationInfo(
        client_id="test-client",
        client_secret="test-secret",
        subscription_key="test-subscription",
    )
