"""Tests for pysmarther exceptions."""

from __future__ import annotations

import pytest

from pysmarther.exceptions import (
    ApiError,
    AuthenticationError,
    AuthorizationRejectedError,
    DeserializeError,
    HandshakeCancelledError,
    InvalidGrantError,
    InvalidParameterError,
    ListenerError,
    NoValidTokenError,
    SmartherConnectionError,
    SmartherError,
    SmartherTimeoutError,
    TokenEndpointError,
    UnsupportedGrantError,
)


class TestSmartherError:
    """Test SmartherError base exception."""

    def test_base_exception_inherits_from_exception(self) -> None:
        """Test that SmartherError inherits from Exception."""
        assert issubclass(SmartherError, Exception)

    def test_base_exception_message(self) -> None:
        """Test that SmartherError can be created with a message."""
        error = SmartherError("Test error message")
        assert str(error) == "Test error message"


class TestAuthorizationErrors:
    """Test the authorization failure family."""

    @pytest.mark.parametrize(
        "error_class",
        [
            NoValidTokenError,
            UnsupportedGrantError,
            TokenEndpointError,
            AuthorizationRejectedError,
            ListenerError,
            InvalidGrantError,
            HandshakeCancelledError,
        ],
    )
    def test_inherits_from_authentication_error(self, error_class: type[SmartherError]) -> None:
        """Test every authorization failure can be caught as AuthenticationError."""
        assert issubclass(error_class, AuthenticationError)
        assert issubclass(error_class, SmartherError)

    def test_token_endpoint_default_message(self) -> None:
        """Test TokenEndpointError describes the status when no message is given."""
        error = TokenEndpointError(400)
        assert error.status == 400
        assert str(error) == "Token endpoint returned status 400"

    def test_token_endpoint_custom_message(self) -> None:
        """Test TokenEndpointError keeps a custom message."""
        error = TokenEndpointError(401, "Bad client secret")
        assert error.status == 401
        assert str(error) == "Bad client secret"


class TestOtherErrors:
    """Test connection, timeout, API and parsing errors."""

    @pytest.mark.parametrize(
        "error_class",
        [SmartherConnectionError, SmartherTimeoutError, ApiError, DeserializeError, InvalidParameterError],
    )
    def test_not_authentication_errors(self, error_class: type[SmartherError]) -> None:
        """Test these errors are outside the authorization family."""
        assert issubclass(error_class, SmartherError)
        assert not issubclass(error_class, AuthenticationError)

    def test_api_error_default_message(self) -> None:
        """Test ApiError describes the status when no message is given."""
        error = ApiError(503)
        assert error.status == 503
        assert str(error) == "API request failed with status 503"

    def test_invalid_parameter_attributes(self) -> None:
        """Test InvalidParameterError with parameter details."""
        error = InvalidParameterError("Missing set point", parameter_name="set_point", value="MANUAL")

        assert str(error) == "Missing set point"
        assert error.parameter_name == "set_point"
        assert error.value == "MANUAL"

    def test_invalid_parameter_defaults(self) -> None:
        """Test InvalidParameterError without parameter details."""
        error = InvalidParameterError("Invalid value")

        assert error.parameter_name is None
        assert error.value is None

    def test_catch_with_base_exception(self) -> None:
        """Test that specific exceptions can be caught with the base exception."""
        with pytest.raises(SmartherError):
            raise SmartherTimeoutError("Timeout")
