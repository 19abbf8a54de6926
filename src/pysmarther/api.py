"""Low-level API client for Smarther v2 endpoints.

This module provides direct HTTP communication with the Smarther API.
All methods return (status_code, response_data) tuples for maximum flexibility.

Authorization headers come from a provider coroutine that is awaited before
every request. When the provider raises (e.g., ``NoValidTokenError``) the
request is never sent.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from aiohttp import ClientError, ClientSession, ClientTimeout

from pysmarther.const import DEFAULT_API_URL, DEFAULT_TIMEOUT
from pysmarther.exceptions import SmartherConnectionError, SmartherTimeoutError


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)

_THERMOREGULATION_PATH = (
    "/chronothermostat/thermoregulation/addressLocation/plants/{plant_id}/modules/parameter/id/value/{module_id}"
)


def _segment(value: str) -> str:
    return quote(value, safe="")


class SmartherAPI:
    """Low-level API client for the Smarther v2 platform.

    Example:
        ```python
        async def headers() -> dict[str, str]:
            return {"Authorization": "Bearer token", "Ocp-Apim-Subscription-Key": "key"}

        async with ClientSession() as session:
            api = SmartherAPI(session=session, headers_provider=headers)
            status, data = await api.get_plants()
        ```
    """

    def __init__(
        self,
        *,
        session: ClientSession,
        headers_provider: Callable[[], Awaitable[dict[str, str]]],
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the API client.

        Args:
            session: aiohttp ClientSession used for all requests. Not closed by this class.
            headers_provider: Coroutine function returning the authorization headers.
            base_url: Base URL for the API. Defaults to the Smarther v2 production API.
            timeout: Total request timeout in seconds.
        """
        self._session = session
        self._headers_provider = headers_provider
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_data: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        """Make an authorized API request.

        Args:
            method: HTTP method (GET, POST, DELETE).
            endpoint: API endpoint path (e.g., "/plants").
            json_data: Optional JSON data for request body.

        Returns:
            Tuple of (status_code, response_data). Response data is None for
            non-success statuses and an empty dict for non-JSON success bodies.

        Raises:
            NoValidTokenError: If the headers provider has no valid token.
            RuntimeError: If the session is closed.
            SmartherTimeoutError: If the request times out.
            SmartherConnectionError: If the connection fails.
        """
        if self._session.closed:
            msg = "Session is closed. Cannot make request."
            raise RuntimeError(msg)

        headers = await self._headers_provider()

        url = f"{self._base_url}{endpoint}"
        timeout = ClientTimeout(total=self._timeout)
        _LOGGER.debug("%s %s", method, url)

        try:
            async with self._session.request(
                method,
                url,
                json=json_data,
                headers=headers,
                timeout=timeout,
            ) as response:
                response_data: Any = None
                if response.status in (HTTPStatus.OK, HTTPStatus.CREATED, HTTPStatus.NO_CONTENT):
                    # Substring match handles charset parameters
                    if "application/json" in response.content_type:
                        response_data = await response.json()
                    else:
                        response_data = {}

                return response.status, response_data

        except TimeoutError as exc:
            _LOGGER.exception("Request to %s timed out", url)
            msg = f"Request to {endpoint} timed out"
            raise SmartherTimeoutError(msg) from exc

        except ClientError as exc:
            _LOGGER.exception("Connection error for %s", url)
            msg = f"Failed to connect to API: {exc}"
            raise SmartherConnectionError(msg) from exc

    # -------------------------------------------------------------------------
    # Plant Endpoints
    # -------------------------------------------------------------------------

    async def get_plants(self) -> tuple[int, Any]:
        """Get the plants visible to the authorized user.

        Returns:
            Tuple of (status_code, response_data) where response_data has format:
            {"plants": [{"id": str, "name": str, "type": str}]}
        """
        return await self.request("GET", "/plants")

    async def get_topology(self, plant_id: str) -> tuple[int, Any]:
        """Get the modules installed in a plant.

        Returns:
            Tuple of (status_code, response_data) where response_data has format:
            {"plant": {"id": str, "name": str, "modules": [...]}}
        """
        return await self.request("GET", f"/plants/{_segment(plant_id)}/topology")

    # -------------------------------------------------------------------------
    # Thermoregulation Endpoints
    # -------------------------------------------------------------------------

    async def get_device_status(self, plant_id: str, module_id: str) -> tuple[int, Any]:
        """Get a chronothermostat status.

        Returns:
            Tuple of (status_code, response_data) where response_data has format:
            {"chronothermostats": [{...}]}
        """
        path = _THERMOREGULATION_PATH.format(plant_id=_segment(plant_id), module_id=_segment(module_id))
        return await self.request("GET", path)

    async def set_device_status(self, plant_id: str, module_id: str, payload: dict[str, Any]) -> tuple[int, Any]:
        """Change a chronothermostat mode.

        Args:
            plant_id: Plant identifier.
            module_id: Module identifier.
            payload: Serialized set-status request.

        Returns:
            Tuple of (status_code, response_data).
        """
        path = _THERMOREGULATION_PATH.format(plant_id=_segment(plant_id), module_id=_segment(module_id))
        return await self.request("POST", path, json_data=payload)

    # -------------------------------------------------------------------------
    # Subscription Endpoints
    # -------------------------------------------------------------------------

    async def register_webhook(self, plant_id: str, endpoint_url: str) -> tuple[int, Any]:
        """Subscribe ``endpoint_url`` to status notifications for a plant.

        Returns:
            Tuple of (status_code, response_data) where response_data has format:
            {"plantId": str, "subscriptionId": str, "EndPointUrl": str}
        """
        return await self.request(
            "POST",
            f"/plants/{_segment(plant_id)}/subscription",
            json_data={"EndPointUrl": endpoint_url},
        )

    async def unregister_webhook(self, plant_id: str, subscription_id: str) -> tuple[int, Any]:
        """Remove a webhook subscription."""
        return await self.request(
            "DELETE",
            f"/plants/{_segment(plant_id)}/subscription/{_segment(subscription_id)}",
        )

    async def get_webhooks(self) -> tuple[int, Any]:
        """List the webhook subscriptions of the authorized user.

        Returns:
            Tuple of (status_code, response_data) where response_data is a list
            of subscription objects.
        """
        return await self.request("GET", "/subscription")
