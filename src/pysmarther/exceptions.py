"""Custom exceptions for pysmarther library."""

from __future__ import annotations

from typing import Any


class SmartherError(Exception):
    """Base exception for all Smarther errors."""


class AuthenticationError(SmartherError):
    """Base exception for authorization failures."""


class NoValidTokenError(AuthenticationError):
    """Exception raised when the current grant holds no usable access token."""


class UnsupportedGrantError(AuthenticationError):
    """Exception raised when a grant variant cannot be exchanged for a token."""


class TokenEndpointError(AuthenticationError):
    """Exception raised when the token endpoint answers with a non-success status.

    Attributes:
        status: HTTP status code returned by the token endpoint.
    """

    def __init__(self, status: int, message: str = "") -> None:
        """Initialize TokenEndpointError.

        Args:
            status: HTTP status code returned by the token endpoint.
            message: Optional error message.
        """
        super().__init__(message or f"Token endpoint returned status {status}")
        self.status = status


class DeserializeError(SmartherError):
    """Exception raised when a response body or saved state cannot be understood."""


class AuthorizationRejectedError(AuthenticationError):
    """Exception raised when the authorization callback fails CSRF or code checks."""


class ListenerError(AuthenticationError):
    """Exception raised when the loopback callback listener cannot run."""


class InvalidGrantError(AuthenticationError):
    """Exception raised when a grant is still unusable after an exchange."""


class HandshakeCancelledError(AuthenticationError):
    """Exception raised when a pending handshake is cancelled by the caller."""


class SmartherConnectionError(SmartherError):
    """Exception raised for connection failures."""


class SmartherTimeoutError(SmartherError):
    """Exception raised when API requests timeout."""


class ApiError(SmartherError):
    """Exception raised when a device endpoint answers with an unexpected status.

    Attributes:
        status: HTTP status code returned by the API.
    """

    def __init__(self, status: int, message: str = "") -> None:
        """Initialize ApiError.

        Args:
            status: HTTP status code returned by the API.
            message: Optional error message.
        """
        super().__init__(message or f"API request failed with status {status}")
        self.status = status


class InvalidParameterError(SmartherError):
    """Exception raised for invalid parameter values.

    Attributes:
        parameter_name: Optional name of the invalid parameter.
        value: Optional value that was invalid.
    """

    def __init__(
        self,
        message: str = "",
        parameter_name: str | None = None,
        value: Any = None,
    ) -> None:
        """Initialize InvalidParameterError.

        Args:
            message: Error message.
            parameter_name: Optional name of the invalid parameter.
            value: Optional value that was invalid.
        """
        super().__init__(message)
        self.parameter_name = parameter_name
        self.value = value
