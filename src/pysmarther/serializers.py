"""Serialization and deserialization of Smarther API payloads.

Stateless functions converting between raw API JSON and the typed models in
``pysmarther.models``. The API is loose with numeric types (``"77.0"`` and
``77.0`` both occur), so numbers are accepted either as JSON numbers or as
numeric strings.

Malformed payloads raise ``DeserializeError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pysmarther.exceptions import DeserializeError
from pysmarther.models import (
    Instrument,
    LoadState,
    Measurement,
    MeasurementUnit,
    Module,
    ModuleCapability,
    ModuleStatus,
    Plant,
    PlantDetail,
    SenderInfo,
    SetStatusRequest,
    SubscriptionInfo,
    ThermostatFunction,
    ThermostatMode,
    ThermostatStatus,
    TimedMeasurement,
)


__all__ = [
    "deserialize_measurement",
    "deserialize_module_status",
    "deserialize_plants",
    "deserialize_subscription",
    "deserialize_subscriptions",
    "deserialize_thermostat_status",
    "deserialize_topology",
    "serialize_set_status_request",
]


def _optional_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def deserialize_measurement(data: dict[str, Any]) -> Measurement:
    """Deserialize a ``{"unit": ..., "value": ...}`` object.

    Example:
        >>> deserialize_measurement({"unit": "F", "value": "77.0"})
        Measurement(value=77.0, unit=<MeasurementUnit.FAHRENHEIT: 'F'>)
    """
    try:
        return Measurement(value=float(data["value"]), unit=MeasurementUnit(data["unit"]))
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"Invalid measurement: {data!r}"
        raise DeserializeError(msg) from exc


def _deserialize_instrument(data: dict[str, Any] | None) -> Instrument | None:
    if data is None:
        return None
    measures = data.get("measures")
    if measures is None:
        return Instrument()
    return Instrument(
        measures=[
            TimedMeasurement(
                time_stamp=datetime.fromisoformat(measure["timeStamp"]),
                value=deserialize_measurement(measure),
            )
            for measure in measures
        ]
    )


def _deserialize_sender(data: dict[str, Any] | None) -> SenderInfo | None:
    if data is None:
        return None
    plant = data.get("plant") or {}
    module = plant.get("module") or {}
    return SenderInfo(
        address_type=data.get("addressType"),
        system=data.get("system"),
        plant_id=plant.get("id"),
        module_id=module.get("id"),
    )


def deserialize_thermostat_status(data: dict[str, Any]) -> ThermostatStatus:
    """Deserialize a single chronothermostat status object."""
    try:
        set_point = data.get("setPoint")
        programs = data.get("programs")
        temperature_format = data.get("temperatureFormat")
        load_state = data.get("loadState")

        return ThermostatStatus(
            function=ThermostatFunction(data["function"].upper()),
            mode=ThermostatMode(data["mode"].upper()),
            time=datetime.fromisoformat(data["time"]),
            set_point=deserialize_measurement(set_point) if set_point is not None else None,
            programs=[int(program["number"]) for program in programs] if programs is not None else None,
            activation_time=_optional_datetime(data.get("activationTime")),
            temperature_format=MeasurementUnit(temperature_format) if temperature_format is not None else None,
            load_state=LoadState(load_state.upper()) if load_state is not None else None,
            thermometer=_deserialize_instrument(data.get("thermometer")),
            hygrometer=_deserialize_instrument(data.get("hygrometer")),
            sender=_deserialize_sender(data.get("sender")),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        msg = f"Invalid thermostat status: {exc}"
        raise DeserializeError(msg) from exc


def deserialize_module_status(data: dict[str, Any]) -> ModuleStatus:
    """Deserialize the module status endpoint response.

    Args:
        data: Raw response in format ``{"chronothermostats": [{...}]}``.

    Returns:
        ModuleStatus with one entry per chronothermostat.
    """
    return ModuleStatus(
        chronothermostats=[deserialize_thermostat_status(item) for item in data.get("chronothermostats", [])]
    )


def deserialize_plants(data: dict[str, Any]) -> list[Plant]:
    """Deserialize the plants endpoint response.

    Args:
        data: Raw response in format ``{"plants": [{"id": str, "name": str, "type": str}]}``.

    Returns:
        List of plants.
    """
    try:
        return [
            Plant(id=plant["id"], name=plant.get("name"), plant_type=plant.get("type"))
            for plant in data.get("plants", [])
        ]
    except (KeyError, TypeError) as exc:
        msg = f"Invalid plants response: {exc}"
        raise DeserializeError(msg) from exc


def _deserialize_capability(data: dict[str, Any]) -> ModuleCapability:
    can_do = {key: value for key, value in data.items() if key != "capability"}
    return ModuleCapability(capability=data.get("capability"), can_do=can_do)


def deserialize_topology(data: dict[str, Any]) -> PlantDetail:
    """Deserialize the plant topology endpoint response.

    Args:
        data: Raw response in format ``{"plant": {"id": str, "name": str, "modules": [...]}}``.

    Returns:
        PlantDetail with its modules.
    """
    try:
        plant = data["plant"]
        modules = [
            Module(
                id=module["id"],
                name=module["name"],
                device=module["device"],
                capabilities=(
                    [_deserialize_capability(capability) for capability in module["capabilities"]]
                    if module.get("capabilities") is not None
                    else None
                ),
            )
            for module in plant.get("modules", [])
        ]
        return PlantDetail(id=plant["id"], name=plant["name"], modules=modules)
    except (KeyError, TypeError) as exc:
        msg = f"Invalid topology response: {exc}"
        raise DeserializeError(msg) from exc


def deserialize_subscription(data: dict[str, Any]) -> SubscriptionInfo:
    """Deserialize a webhook subscription object."""
    subscription_id = data.get("subscriptionId")
    if subscription_id is None:
        msg = f"Invalid subscription: {data!r}"
        raise DeserializeError(msg)
    return SubscriptionInfo(
        subscription_id=subscription_id,
        plant_id=data.get("plantId"),
        endpoint_url=data.get("EndPointUrl") or data.get("endPointUrl"),
    )


def deserialize_subscriptions(data: list[dict[str, Any]]) -> list[SubscriptionInfo]:
    """Deserialize the subscriptions list endpoint response."""
    return [deserialize_subscription(item) for item in data]


def serialize_set_status_request(request: SetStatusRequest) -> dict[str, Any]:
    """Serialize a set-status request, omitting unset optional fields.

    Example:
        >>> serialize_set_status_request(
        ...     SetStatusRequest(
        ...         function=ThermostatFunction.HEATING,
        ...         mode=ThermostatMode.MANUAL,
        ...         set_point=Measurement(value=21.5, unit=MeasurementUnit.CELSIUS),
        ...     )
        ... )
        {'function': 'HEATING', 'mode': 'MANUAL', 'setPoint': {'value': 21.5, 'unit': 'C'}}
    """
    payload: dict[str, Any] = {
        "function": request.function.value,
        "mode": request.mode.value,
    }
    if request.set_point is not None:
        payload["setPoint"] = {"value": request.set_point.value, "unit": request.set_point.unit.value}
    if request.programs is not None:
        payload["programs"] = [{"number": number} for number in request.programs]
    if request.activation_time is not None:
        payload["activationTime"] = request.activation_time
    return payload
