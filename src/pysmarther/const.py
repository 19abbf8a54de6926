"""Constants for pysmarther library."""

from __future__ import annotations


# API Configuration
DEFAULT_API_URL = "https://api.developer.legrand.com/smarther/v2.0"
DEFAULT_AUTHORIZE_URL = "https://partners-login.eliotbylegrand.com/authorize"
DEFAULT_TOKEN_URL = "https://partners-login.eliotbylegrand.com/token"
DEFAULT_TIMEOUT = 30  # seconds

# Request headers
SUBSCRIPTION_KEY_HEADER = "Ocp-Apim-Subscription-Key"

# OAuth2 grant types
GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"
GRANT_TYPE_REFRESH_TOKEN = "refresh_token"

# Loopback callback listener
DEFAULT_CALLBACK_HOST = "127.0.0.1"
DEFAULT_CALLBACK_PORT = 23784
DEFAULT_REDIRECT_PATH = "/tokens"
NONCE_BYTES = 32

# Callback page banners (shown in the user's browser only)
CALLBACK_SUCCESS_TEXT = "Authorized! You can close this window now."
CALLBACK_FAILURE_TEXT = "Error during authorization"
CALLBACK_COMPLETED_TEXT = "Authorization already completed."
