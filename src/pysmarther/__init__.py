"""Python client library for Legrand/BTicino Smarther thermostats.

This package provides an async client for the Smarther v2 cloud API, including
the interactive OAuth2 authorization-code handshake.

The library is organized into layers:
1. **Grant Layer** (pysmarther.grant): Authorization material and its validity rules
2. **Auth Layer** (pysmarther.auth, pysmarther.callback): Token exchange and the
   loopback callback handshake
3. **Client Layer** (pysmarther.client): Unauthenticated and authenticated views
4. **API Layer** (pysmarther.api): Low-level HTTP communication with the Smarther API

Example:
    ```python
    import json
    from pathlib import Path

    from pysmarther import AuthorizationInfo, SmartherClient

    saved = Path("saved_tokens.json")

    async with SmartherClient() as client:
        if saved.exists():
            info = AuthorizationInfo.from_dict(json.loads(saved.read_text()))
        else:
            info = await client.begin_handshake("client-id", "client-secret", "subscription-key")
            saved.write_text(json.dumps(info.to_dict()))

        smarther = await client.resume(
            info, on_authorization_updated=lambda new: saved.write_text(json.dumps(new.to_dict()))
        )
        for plant in await smarther.get_plants():
            topology = await smarther.get_topology(plant.id)
            print(plant.name, [module.name for module in topology.modules])
    ```
"""

from __future__ import annotations

from pysmarther.api import SmartherAPI
from pysmarther.auth import CredentialExchanger
from pysmarther.callback import HandshakeState, LoopbackCallbackCoordinator
from pysmarther.client import AuthenticatedSmartherClient, SmartherClient
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
from pysmarther.grant import AuthorizationInfo, Grant, NoGrant, PendingCode, Token
from pysmarther.models import (
    LoadState,
    Measurement,
    MeasurementUnit,
    Module,
    ModuleStatus,
    Plant,
    PlantDetail,
    SetStatusRequest,
    SubscriptionInfo,
    ThermostatFunction,
    ThermostatMode,
    ThermostatStatus,
)


__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "AuthenticatedSmartherClient",
    "AuthenticationError",
    "AuthorizationInfo",
    "AuthorizationRejectedError",
    "CredentialExchanger",
    "DeserializeError",
    "Grant",
    "HandshakeCancelledError",
    "HandshakeState",
    "InvalidGrantError",
    "InvalidParameterError",
    "ListenerError",
    "LoadState",
    "LoopbackCallbackCoordinator",
    "Measurement",
    "MeasurementUnit",
    "Module",
    "ModuleStatus",
    "NoGrant",
    "NoValidTokenError",
    "PendingCode",
    "Plant",
    "PlantDetail",
    "SetStatusRequest",
    "SmartherAPI",
    "SmartherClient",
    "SmartherConnectionError",
    "SmartherError",
    "SmartherTimeoutError",
    "SubscriptionInfo",
    "ThermostatFunction",
    "ThermostatMode",
    "ThermostatStatus",
    "Token",
    "TokenEndpointError",
    "UnsupportedGrantError",
    "__version__",
]
