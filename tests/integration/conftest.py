"""Pytest configuration and fixtures for integration tests."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from dotenv import load_dotenv

from pysmarther import AuthorizationInfo


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from pysmarther import AuthenticatedSmartherClient


# Load .env file from project root
env_path = Path(__file__).parents[2] / ".env"
load_dotenv(env_path)


@pytest.fixture(scope="session")
def auth_file() -> Path:
    """Locate the saved authorization record.

    The record is the JSON form of ``AuthorizationInfo.to_dict()``, as written
    by ``examples/authorize.py``.

    Raises:
        ValueError: If the environment does not point to an existing file.
    """
    path = os.getenv("SMARTHER_AUTH_FILE")

    if not path or not Path(path).is_file():
        msg = (
            "Missing authorization record. "
            "Run examples/authorize.py and set SMARTHER_AUTH_FILE in the .env file"
        )
        raise ValueError(msg)

    return Path(path)


@pytest.fixture
def saved_info(auth_file: Path) -> AuthorizationInfo:
    """Load the saved authorization record."""
    return AuthorizationInfo.from_dict(json.loads(auth_file.read_text()))


@pytest.fixture
def save_info(auth_file: Path) -> Callable[[AuthorizationInfo], None]:
    """Persist refreshed authorization records so later runs can resume."""

    def save(info: AuthorizationInfo) -> None:
        auth_file.write_text(json.dumps(info.to_dict(), indent=2))

    return save


@pytest.fixture
async def smarther(
    saved_info: AuthorizationInfo, save_info: Callable[[AuthorizationInfo], None]
) -> AsyncGenerator[AuthenticatedSmartherClient]:
    """Create an authenticated client from the saved record."""
    from pysmarther import SmartherClient

    async with SmartherClient() as client:
        yield await client.resume(saved_info, auto_refresh=True, on_authorization_updated=save_info)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line("markers", "integration: Integration tests requiring real API access")
