"""Loopback callback listener for the interactive OAuth2 authorization-code handshake.

One ``LoopbackCallbackCoordinator`` drives exactly one handshake attempt:

1. A single-route ``aiohttp.web`` application is started on a loopback address.
2. The authorization URL, carrying a freshly minted CSRF nonce as ``state``,
   is logged and handed to the browser opener.
3. The route handler settles a single-slot future with either the
   authorization code or an ``AuthorizationRejectedError``.
4. The waiting caller returns as soon as the future settles or the listener
   fails, whichever comes first, and the listener is always torn down before
   ``wait()`` returns.

The attempt can be abandoned by cancelling the task awaiting ``wait()`` or by
calling ``cancel()``. A coordinator is single-use; start a new one (with a new
nonce) for every attempt.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import webbrowser
from enum import Enum
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from aiohttp import web

from pysmarther.const import (
    CALLBACK_COMPLETED_TEXT,
    CALLBACK_FAILURE_TEXT,
    CALLBACK_SUCCESS_TEXT,
    DEFAULT_AUTHORIZE_URL,
    DEFAULT_CALLBACK_HOST,
    DEFAULT_CALLBACK_PORT,
    DEFAULT_REDIRECT_PATH,
    NONCE_BYTES,
)
from pysmarther.exceptions import AuthorizationRejectedError, HandshakeCancelledError, ListenerError


if TYPE_CHECKING:
    from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


class HandshakeState(Enum):
    """Lifecycle of a single handshake attempt."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    DELIVERED = "delivered"  # Terminal
    SERVER_FAILED = "server_failed"  # Terminal
    CANCELLED = "cancelled"  # Terminal


def mint_nonce() -> str:
    """Generate a single-use CSRF nonce."""
    return secrets.token_urlsafe(NONCE_BYTES)


def build_authorization_url(authorize_url: str, client_id: str, nonce: str, redirect_uri: str) -> str:
    """Build the browser-facing authorization URL.

    Args:
        authorize_url: Authorization endpoint.
        client_id: OAuth2 client identifier.
        nonce: CSRF nonce sent as the ``state`` parameter.
        redirect_uri: Loopback callback URL.

    Returns:
        The authorization URL with an encoded query string.
    """
    query = urlencode(
        {
            "response_type": "code",
            "client_id": client_id,
            "state": nonce,
            "redirect_uri": redirect_uri,
        }
    )
    return f"{authorize_url}?{query}"


class LoopbackCallbackCoordinator:
    """Capture one authorization code through a short-lived loopback listener.

    Example:
        ```python
        coordinator = LoopbackCallbackCoordinator(client_id="my-client", port=23784)
        code = await coordinator.wait()
        ```

    Attributes:
        client_id: OAuth2 client identifier embedded in the authorization URL.
        state: Current ``HandshakeState``.
        authorization_url: URL the user was directed to, once listening.
        redirect_uri: Callback URL registered in the authorization URL, once listening.
    """

    def __init__(
        self,
        client_id: str,
        *,
        authorize_url: str = DEFAULT_AUTHORIZE_URL,
        host: str = DEFAULT_CALLBACK_HOST,
        port: int = DEFAULT_CALLBACK_PORT,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
        base_uri: str | None = None,
        open_browser: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client_id: OAuth2 client identifier.
            authorize_url: Authorization endpoint. Defaults to the Legrand partner login.
            host: Loopback address to bind the listener to.
            port: Port to bind. ``0`` picks a free port.
            redirect_path: Path of the single callback route.
            base_uri: Public base of the redirect URI when the listener sits
                behind a proxy. Defaults to ``http://<host>:<port>``.
            open_browser: Callable receiving the authorization URL. Defaults to
                ``webbrowser.open``.
        """
        self.client_id = client_id
        self._nonce = mint_nonce()
        self.state = HandshakeState.IDLE
        self.authorization_url: str | None = None
        self.redirect_uri: str | None = None

        self._authorize_url = authorize_url
        self._host = host
        self._port = port
        self._redirect_path = "/" + redirect_path.lstrip("/")
        self._base_uri = base_uri.rstrip("/") if base_uri else None
        self._open_browser = open_browser if open_browser is not None else webbrowser.open

        self._result: asyncio.Future[str] | None = None
        self._runner: web.AppRunner | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._cancel_requested = False

    @property
    def nonce(self) -> str:
        """CSRF nonce bound to this attempt, minted at construction."""
        return self._nonce

    def _result_future(self) -> asyncio.Future[str]:
        if self._result is None:
            self._result = asyncio.get_running_loop().create_future()
        return self._result

    def build_app(self) -> web.Application:
        """Build the single-route callback application."""
        app = web.Application()
        app.router.add_get(self._redirect_path, self._handle_callback)
        return app

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Settle the handshake result from the redirect query string.

        Only the first hit settles the result; later hits get a 409 and leave
        it untouched.
        """
        result = self._result_future()
        if result.done():
            _LOGGER.warning("Ignoring callback for an already completed handshake")
            return web.Response(status=HTTPStatus.CONFLICT, text=CALLBACK_COMPLETED_TEXT)

        code = request.query.get("code")
        state = request.query.get("state")

        if state is None or not secrets.compare_digest(state.encode(), self._nonce.encode()):
            reason = "state does not match the issued nonce"
        elif not code:
            error = request.query.get("error")
            reason = f"authorization server returned {error}" if error else "no authorization code"
        else:
            _LOGGER.debug("Authorization code received on %s", request.path)
            result.set_result(code)
            return web.Response(text=CALLBACK_SUCCESS_TEXT)

        _LOGGER.warning("Rejected authorization callback: %s", reason)
        msg = f"Authorization rejected: {reason}"
        result.set_exception(AuthorizationRejectedError(msg))
        return web.Response(text=CALLBACK_FAILURE_TEXT)

    async def _serve(self, listening: asyncio.Future[int]) -> None:
        """Run the listener until cancelled, publishing the bound port."""
        if self._runner is None:
            msg = "Callback listener runner not initialized"
            raise RuntimeError(msg)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        listening.set_result(self._runner.addresses[0][1])
        # Park until torn down
        await asyncio.get_running_loop().create_future()

    def _build_redirect_uri(self, port: int) -> str:
        base = self._base_uri or f"http://{self._host}:{port}"
        return f"{base}{self._redirect_path}"

    def _direct_user(self, url: str) -> None:
        _LOGGER.info("Please open the following link in your browser: %s", url)
        try:
            opened = self._open_browser(url)
        except webbrowser.Error as exc:
            _LOGGER.warning("Failed to open browser (%s), please open the link manually", exc)
            return
        if opened is False:
            _LOGGER.warning("Failed to open browser, please open the link manually")

    async def _race(self, waiter: asyncio.Future[Any]) -> None:
        """Wait for ``waiter`` or the listener task, whichever finishes first.

        Raises:
            ListenerError: If the listener task finishes first.
        """
        if self._server_task is None:
            msg = "Callback listener not started"
            raise RuntimeError(msg)
        done, _ = await asyncio.wait({waiter, self._server_task}, return_when=asyncio.FIRST_COMPLETED)
        if waiter in done:
            return

        self.state = HandshakeState.SERVER_FAILED
        cause = None if self._server_task.cancelled() else self._server_task.exception()
        msg = f"Error running local callback server on {self._host}:{self._port}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        raise ListenerError(msg) from cause

    async def wait(self) -> str:
        """Run the handshake attempt and return the authorization code.

        Returns:
            The authorization code delivered to the callback route.

        Raises:
            AuthorizationRejectedError: If the callback failed the CSRF check or
                carried no code.
            ListenerError: If the listener could not be started or stopped
                before a callback arrived.
            HandshakeCancelledError: If ``cancel()`` was called.
            asyncio.CancelledError: If the task awaiting this call is cancelled.
            RuntimeError: If this coordinator was already used.
        """
        if self._cancel_requested:
            self.state = HandshakeState.CANCELLED
            msg = "Handshake cancelled before it started"
            raise HandshakeCancelledError(msg)

        if self.state is not HandshakeState.IDLE:
            msg = "Handshake coordinator can only be used once"
            raise RuntimeError(msg)

        loop = asyncio.get_running_loop()
        result = self._result_future()
        listening: asyncio.Future[int] = loop.create_future()
        self._runner = web.AppRunner(self.build_app(), access_log=None)
        self.state = HandshakeState.AWAITING_CALLBACK
        self._server_task = asyncio.create_task(self._serve(listening))

        try:
            await self._race(listening)

            # Never send the user to a cancelled attempt
            if self._cancel_requested:
                self.state = HandshakeState.CANCELLED
                msg = "Handshake cancelled while the listener was starting"
                raise HandshakeCancelledError(msg)

            self.redirect_uri = self._build_redirect_uri(listening.result())
            self.authorization_url = build_authorization_url(
                self._authorize_url, self.client_id, self._nonce, self.redirect_uri
            )
            _LOGGER.debug("Listening for authorization callback on %s", self.redirect_uri)
            self._direct_user(self.authorization_url)

            await self._race(result)

            if result.cancelled():
                self.state = HandshakeState.CANCELLED
                msg = "Handshake cancelled by caller"
                raise HandshakeCancelledError(msg)

            self.state = HandshakeState.DELIVERED
            code = result.result()
            _LOGGER.info("Authorization code received")
            return code

        except asyncio.CancelledError:
            self.state = HandshakeState.CANCELLED
            _LOGGER.debug("Handshake wait cancelled, shutting down listener")
            raise

        finally:
            await self._teardown()

    def cancel(self) -> None:
        """Abandon the attempt.

        A pending ``wait()`` raises ``HandshakeCancelledError`` and tears the
        listener down. Calling this before ``wait()`` makes ``wait()`` fail
        immediately. Has no effect once the result was delivered.
        """
        self._cancel_requested = True
        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def _teardown(self) -> None:
        """Stop the listener and release its socket."""
        if self._result is not None and not self._result.done():
            self._result.cancel()

        if self._server_task is not None:
            if not self._server_task.done():
                self._server_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._server_task
            elif not self._server_task.cancelled():
                # Mark a late listener failure as retrieved
                self._server_task.exception()

        if self._runner is not None and self._runner.server is not None:
            await self._runner.cleanup()
        _LOGGER.debug("Callback listener stopped")
