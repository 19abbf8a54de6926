"""Smarther client with separate unauthenticated and authenticated views.

``SmartherClient`` can only obtain and renew authorization. Its ``resume()``
method is the only way to get an ``AuthenticatedSmartherClient``, which in
turn exposes the device operations and never issues a request without a
valid access token.

Example:
    First run, interactive:

    ```python
    async with SmartherClient() as client:
        info = await client.begin_handshake("client-id", "client-secret", "subscription-key")
        save(info.to_dict())
    ```

    Later runs, from saved state:

    ```python
    async with SmartherClient() as client:
        smarther = await client.resume(
            AuthorizationInfo.from_dict(load()),
            on_authorization_updated=lambda info: save(info.to_dict()),
        )
        for plant in await smarther.get_plants():
            print(plant.name)
    ```
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from aiohttp import ClientSession

from pysmarther.api import SmartherAPI
from pysmarther.auth import CredentialExchanger
from pysmarther.callback import LoopbackCallbackCoordinator
from pysmarther.const import (
    DEFAULT_API_URL,
    DEFAULT_AUTHORIZE_URL,
    DEFAULT_CALLBACK_HOST,
    DEFAULT_CALLBACK_PORT,
    DEFAULT_REDIRECT_PATH,
    DEFAULT_TIMEOUT,
    DEFAULT_TOKEN_URL,
    SUBSCRIPTION_KEY_HEADER,
)
from pysmarther.exceptions import ApiError, InvalidGrantError, InvalidParameterError, UnsupportedGrantError
from pysmarther.grant import AuthorizationInfo, PendingCode
from pysmarther.models import ThermostatMode
from pysmarther.serializers import (
    deserialize_module_status,
    deserialize_plants,
    deserialize_subscription,
    deserialize_subscriptions,
    deserialize_topology,
    serialize_set_status_request,
)


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from pysmarther.models import ModuleStatus, Plant, PlantDetail, SetStatusRequest, SubscriptionInfo

_LOGGER = logging.getLogger(__name__)

# Only SmartherClient.resume() holds this key
_TRANSITION_KEY = object()

_REQUIRED_FIELD_BY_MODE = {
    ThermostatMode.MANUAL: "set_point",
    ThermostatMode.BOOST: "activation_time",
    ThermostatMode.AUTOMATIC: "programs",
}


class _ClientCore:
    """Connection state shared by both client views."""

    def __init__(
        self,
        *,
        session: ClientSession | None,
        api_url: str,
        authorize_url: str,
        token_url: str,
        timeout: float,
    ) -> None:
        self.session = session
        self.owns_session = session is None
        self.api_url = api_url.rstrip("/")
        self.authorize_url = authorize_url
        self.timeout = timeout
        self.exchanger = CredentialExchanger(token_url, session=session, timeout=timeout)

    async def open(self) -> None:
        if self.session is None:
            self.session = ClientSession()
            self.owns_session = True
            self.exchanger.set_session(self.session)

    async def close(self) -> None:
        if self.owns_session and self.session is not None:
            await self.session.close()

    def validate_session(self) -> ClientSession:
        if self.session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self.session.closed:
            msg = "Session is closed. Cannot make requests."
            raise RuntimeError(msg)

        return self.session


class SmartherClient:
    """Unauthenticated Smarther client.

    Runs the interactive authorization-code handshake, exchanges codes and
    refresh tokens, and turns a usable ``AuthorizationInfo`` into an
    ``AuthenticatedSmartherClient`` through ``resume()``. Once ``resume()``
    succeeds this client is spent: the authenticated view takes over its
    connection, and further calls raise ``RuntimeError``.

    The aiohttp session created by ``async with`` is closed on exit, which
    also ends the usefulness of the authenticated view obtained from it.
    """

    def __init__(
        self,
        *,
        session: ClientSession | None = None,
        api_url: str = DEFAULT_API_URL,
        authorize_url: str = DEFAULT_AUTHORIZE_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            api_url: Base URL for the device API.
            authorize_url: Authorization endpoint the user is sent to.
            token_url: Token endpoint used for code and refresh exchanges.
            timeout: Total request timeout in seconds.
        """
        self._core = _ClientCore(
            session=session,
            api_url=api_url,
            authorize_url=authorize_url,
            token_url=token_url,
            timeout=timeout,
        )
        self._spent = False

    async def __aenter__(self) -> SmartherClient:
        """Enter the context manager, creating a session if none was given."""
        await self._core.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if it was created here."""
        await self._core.close()

    def _ensure_unauthenticated(self) -> None:
        if self._spent:
            msg = "Client already authorized. Use the AuthenticatedSmartherClient returned by resume()."
            raise RuntimeError(msg)

    async def request_access_code(
        self,
        client_id: str,
        client_secret: str,
        subscription_key: str,
        *,
        host: str = DEFAULT_CALLBACK_HOST,
        port: int = DEFAULT_CALLBACK_PORT,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
        base_uri: str | None = None,
        open_browser: Callable[[str], Any] | None = None,
    ) -> AuthorizationInfo:
        """Capture an authorization code through the loopback callback.

        Args:
            client_id: OAuth2 client identifier.
            client_secret: OAuth2 client secret.
            subscription_key: API subscription key.
            host: Loopback address for the callback listener.
            port: Callback listener port. ``0`` picks a free port.
            redirect_path: Callback route path.
            base_uri: Public base of the redirect URI, if it differs from
                ``http://<host>:<port>``.
            open_browser: Callable receiving the authorization URL. Defaults to
                ``webbrowser.open``.

        Returns:
            AuthorizationInfo holding a ``PendingCode`` grant.

        Raises:
            AuthorizationRejectedError: If the callback failed the CSRF check.
            ListenerError: If the callback listener could not run.
            HandshakeCancelledError: If the handshake was cancelled.
        """
        self._ensure_unauthenticated()
        coordinator = LoopbackCallbackCoordinator(
            client_id,
            authorize_url=self._core.authorize_url,
            host=host,
            port=port,
            redirect_path=redirect_path,
            base_uri=base_uri,
            open_browser=open_browser,
        )
        code = await coordinator.wait()
        return AuthorizationInfo(
            client_id=client_id,
            client_secret=client_secret,
            subscription_key=subscription_key,
            grant=PendingCode(code=code, nonce=coordinator.nonce),
        )

    async def begin_handshake(
        self,
        client_id: str,
        client_secret: str,
        subscription_key: str,
        *,
        host: str = DEFAULT_CALLBACK_HOST,
        port: int = DEFAULT_CALLBACK_PORT,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
        base_uri: str | None = None,
        open_browser: Callable[[str], Any] | None = None,
    ) -> AuthorizationInfo:
        """Run the full interactive handshake and exchange the code for a token.

        Takes the same arguments as ``request_access_code``.

        Returns:
            AuthorizationInfo holding a ``Token`` grant, ready to be stored by
            the caller and passed to ``resume()``.

        Raises:
            AuthorizationRejectedError: If the callback failed the CSRF check.
            ListenerError: If the callback listener could not run.
            TokenEndpointError: If the code exchange was refused.
            DeserializeError: If the token response was malformed.
        """
        info = await self.request_access_code(
            client_id,
            client_secret,
            subscription_key,
            host=host,
            port=port,
            redirect_path=redirect_path,
            base_uri=base_uri,
            open_browser=open_browser,
        )
        return await self.refresh(info)

    async def refresh(self, info: AuthorizationInfo) -> AuthorizationInfo:
        """Exchange the grant held by ``info`` once.

        Returns:
            A copy of ``info`` holding the new ``Token``.

        Raises:
            UnsupportedGrantError: If ``info`` holds no exchangeable grant.
            TokenEndpointError: If the token endpoint refused the exchange.
            DeserializeError: If the token response was malformed.
        """
        self._ensure_unauthenticated()
        self._core.validate_session()
        return await self._core.exchanger.exchange_info(info)

    async def resume(
        self,
        info: AuthorizationInfo,
        *,
        auto_refresh: bool = False,
        on_authorization_updated: Callable[[AuthorizationInfo], None] | None = None,
    ) -> AuthenticatedSmartherClient:
        """Obtain the authenticated view for ``info``.

        A grant that needs refreshing is exchanged once first. The updated
        record is passed to ``on_authorization_updated`` so the caller can
        store it.

        Args:
            info: Authorization record, fresh from a handshake or loaded from storage.
            auto_refresh: Let the authenticated view refresh an expired token
                once before a request instead of failing with ``NoValidTokenError``.
            on_authorization_updated: Callback invoked with every new
                AuthorizationInfo produced by an exchange.

        Returns:
            The authenticated client.

        Raises:
            InvalidGrantError: If the grant is still unusable after the exchange,
                or cannot be exchanged at all.
            TokenEndpointError: If the token endpoint refused the exchange.
            DeserializeError: If the token response was malformed.
        """
        self._ensure_unauthenticated()
        self._core.validate_session()

        if info.is_refresh_needed():
            _LOGGER.debug("Authorization needs to be refreshed before use")
            try:
                info = await self._core.exchanger.exchange_info(info)
            except UnsupportedGrantError as exc:
                msg = f"Authorization cannot be refreshed: {exc}"
                raise InvalidGrantError(msg) from exc

            if on_authorization_updated is not None:
                on_authorization_updated(info)

        if not info.grant.is_valid():
            msg = "Authorization is still not valid after refresh"
            raise InvalidGrantError(msg)

        self._spent = True
        return AuthenticatedSmartherClient(
            self._core,
            info,
            auto_refresh=auto_refresh,
            on_authorization_updated=on_authorization_updated,
            _key=_TRANSITION_KEY,
        )


class AuthenticatedSmartherClient:
    """Authenticated Smarther client exposing device operations.

    Only obtainable from ``SmartherClient.resume()``. Every operation asks the
    current grant for a bearer token first and fails with
    ``NoValidTokenError``, without touching the network, when the token has
    expired (unless ``auto_refresh`` was enabled).

    Attributes:
        api: Low-level SmartherAPI instance for HTTP communication.
    """

    def __init__(
        self,
        core: _ClientCore,
        info: AuthorizationInfo,
        *,
        auto_refresh: bool = False,
        on_authorization_updated: Callable[[AuthorizationInfo], None] | None = None,
        _key: object = None,
    ) -> None:
        """Initialize the authenticated view. Use ``SmartherClient.resume()`` instead.

        Raises:
            TypeError: If constructed directly.
        """
        if _key is not _TRANSITION_KEY:
            msg = "AuthenticatedSmartherClient can only be obtained from SmartherClient.resume()"
            raise TypeError(msg)

        self._core = core
        self._info = info
        self._auto_refresh = auto_refresh
        self._on_authorization_updated = on_authorization_updated
        self._refresh_lock = asyncio.Lock()
        self._api = SmartherAPI(
            session=core.validate_session(),
            headers_provider=self._authorization_headers,
            base_url=core.api_url,
            timeout=core.timeout,
        )

    @property
    def api(self) -> SmartherAPI:
        """Get the underlying API client."""
        return self._api

    @property
    def authorization_info(self) -> AuthorizationInfo:
        """Current authorization record, updated after any refresh."""
        return self._info

    async def _refresh_expired(self) -> None:
        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            if not self._info.is_refresh_needed():
                return

            _LOGGER.info("Access token expired, refreshing")
            self._info = await self._core.exchanger.exchange_info(self._info)

            if self._on_authorization_updated is not None:
                self._on_authorization_updated(self._info)

    async def _authorization_headers(self) -> dict[str, str]:
        if self._auto_refresh and self._info.is_refresh_needed():
            await self._refresh_expired()

        token = self._info.grant.bearer_token()
        return {
            "Authorization": f"Bearer {token}",
            SUBSCRIPTION_KEY_HEADER: self._info.subscription_key,
        }

    @staticmethod
    def _check_status(status: int, expected: tuple[int, ...], action: str) -> None:
        if status not in expected:
            msg = f"Failed to {action}: HTTP {status}"
            raise ApiError(status, msg)

    async def get_plants(self) -> list[Plant]:
        """Get the plants visible to the authorized user.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, data = await self._api.get_plants()
        self._check_status(status, (HTTPStatus.OK,), "get plants")
        return deserialize_plants(data or {})

    async def get_topology(self, plant_id: str) -> PlantDetail:
        """Get the modules installed in a plant.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, data = await self._api.get_topology(plant_id)
        self._check_status(status, (HTTPStatus.OK,), f"get topology of plant {plant_id}")
        return deserialize_topology(data or {})

    async def get_device_status(self, plant_id: str, module_id: str) -> ModuleStatus:
        """Get the status of a chronothermostat module.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, data = await self._api.get_device_status(plant_id, module_id)
        self._check_status(status, (HTTPStatus.OK,), f"get status of module {module_id}")
        return deserialize_module_status(data or {})

    async def set_device_status(self, plant_id: str, module_id: str, request: SetStatusRequest) -> None:
        """Change the mode of a chronothermostat module.

        Raises:
            InvalidParameterError: If the request lacks the field its mode needs.
                No request is sent.
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        if not request.validate():
            field_name = _REQUIRED_FIELD_BY_MODE.get(request.mode)
            msg = f"Invalid status: {request.mode.value} mode requires {field_name}"
            raise InvalidParameterError(msg, parameter_name=field_name, value=request.mode)

        status, _ = await self._api.set_device_status(plant_id, module_id, serialize_set_status_request(request))
        self._check_status(status, (HTTPStatus.OK,), f"set status of module {module_id}")
        _LOGGER.debug("Set module %s to %s", module_id, request.mode.value)

    async def register_webhook(self, plant_id: str, endpoint_url: str) -> SubscriptionInfo:
        """Subscribe ``endpoint_url`` to status notifications for a plant.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, data = await self._api.register_webhook(plant_id, endpoint_url)
        self._check_status(status, (HTTPStatus.CREATED,), f"register webhook for plant {plant_id}")
        return deserialize_subscription(data or {})

    async def unregister_webhook(self, plant_id: str, subscription_id: str) -> None:
        """Remove a webhook subscription.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, _ = await self._api.unregister_webhook(plant_id, subscription_id)
        self._check_status(status, (HTTPStatus.OK,), f"unregister webhook {subscription_id}")

    async def get_webhooks(self) -> list[SubscriptionInfo]:
        """List the webhook subscriptions of the authorized user.

        Raises:
            NoValidTokenError: If the access token has expired.
            ApiError: If the API answers with an unexpected status.
        """
        status, data = await self._api.get_webhooks()
        self._check_status(status, (HTTPStatus.OK,), "get webhooks")
        return deserialize_subscriptions(data or [])
