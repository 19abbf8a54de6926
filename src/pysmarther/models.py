"""Data models for Smarther API requests and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - Used at runtime by dataclass fields
from enum import Enum
from typing import Any


__all__ = [
    "Instrument",
    "LoadState",
    "Measurement",
    "MeasurementUnit",
    "Module",
    "ModuleCapability",
    "ModuleStatus",
    "Plant",
    "PlantDetail",
    "SenderInfo",
    "SetStatusRequest",
    "SubscriptionInfo",
    "ThermostatFunction",
    "ThermostatMode",
    "ThermostatStatus",
    "TimedMeasurement",
]


class ThermostatFunction(Enum):
    """Thermoregulation function."""

    HEATING = "HEATING"
    COOLING = "COOLING"


class ThermostatMode(Enum):
    """Chronothermostat operating mode."""

    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"
    BOOST = "BOOST"
    OFF = "OFF"
    PROTECTION = "PROTECTION"


class LoadState(Enum):
    """Whether the controlled load (boiler, heat pump) is running."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class MeasurementUnit(Enum):
    """Unit of a measurement value."""

    CELSIUS = "C"
    FAHRENHEIT = "F"
    PERCENTAGE = "%"


@dataclass
class Plant:
    """A plant (installation) visible to the authorized user.

    Attributes:
        id: Plant identifier.
        name: Human-readable plant name.
        plant_type: Plant type as reported by the API.
    """

    id: str
    name: str | None = None
    plant_type: str | None = None


@dataclass
class ModuleCapability:
    """A capability advertised by a module.

    Attributes:
        capability: Capability name, if reported.
        can_do: Remaining capability flags as returned by the API.
    """

    capability: str | None = None
    can_do: dict[str, Any] = field(default_factory=dict)


@dataclass
class Module:
    """A device module belonging to a plant.

    Attributes:
        id: Module identifier.
        name: Human-readable module name.
        device: Device kind (e.g., "chronothermostat").
        capabilities: Advertised capabilities, if reported.
    """

    id: str
    name: str
    device: str
    capabilities: list[ModuleCapability] | None = None


@dataclass
class PlantDetail:
    """Plant topology.

    Attributes:
        id: Plant identifier.
        name: Human-readable plant name.
        modules: Modules installed in the plant.
    """

    id: str
    name: str
    modules: list[Module] = field(default_factory=list)


@dataclass
class Measurement:
    """A measured or requested value with its unit."""

    value: float
    unit: MeasurementUnit


@dataclass
class TimedMeasurement:
    """A measurement taken at a given instant."""

    time_stamp: datetime
    value: Measurement


@dataclass
class Instrument:
    """A sensor (thermometer or hygrometer) and its latest measures."""

    measures: list[TimedMeasurement] | None = None


@dataclass
class SenderInfo:
    """Origin of a status message.

    Attributes:
        address_type: Addressing scheme of the sender.
        system: Sending system.
        plant_id: Plant the sender belongs to.
        module_id: Module that sent the status.
    """

    address_type: str | None = None
    system: str | None = None
    plant_id: str | None = None
    module_id: str | None = None


@dataclass
class ThermostatStatus:
    """Status of a single chronothermostat.

    Attributes:
        function: Heating or cooling.
        mode: Current operating mode.
        time: Instant the status refers to.
        set_point: Target value, if any.
        programs: Active program numbers, if any.
        activation_time: End of a boost or manual period, if any.
        temperature_format: Unit used for temperatures.
        load_state: Whether the load is currently active.
        thermometer: Temperature sensor readings.
        hygrometer: Humidity sensor readings.
        sender: Origin of the message.
    """

    function: ThermostatFunction
    mode: ThermostatMode
    time: datetime
    set_point: Measurement | None = None
    programs: list[int] | None = None
    activation_time: datetime | None = None
    temperature_format: MeasurementUnit | None = None
    load_state: LoadState | None = None
    thermometer: Instrument | None = None
    hygrometer: Instrument | None = None
    sender: SenderInfo | None = None

    @property
    def temperature(self) -> Measurement | None:
        """Latest thermometer reading, if any."""
        if self.thermometer is None or not self.thermometer.measures:
            return None
        return self.thermometer.measures[0].value

    @property
    def humidity(self) -> Measurement | None:
        """Latest hygrometer reading, if any."""
        if self.hygrometer is None or not self.hygrometer.measures:
            return None
        return self.hygrometer.measures[0].value

    @property
    def is_load_active(self) -> bool:
        """Check if the controlled load is running."""
        return self.load_state is LoadState.ACTIVE


@dataclass
class ModuleStatus:
    """Status response for a module."""

    chronothermostats: list[ThermostatStatus] = field(default_factory=list)


@dataclass
class SetStatusRequest:
    """Request to change a chronothermostat's mode.

    Each mode needs its own companion field:

    - ``MANUAL`` needs ``set_point``
    - ``BOOST`` needs ``activation_time``
    - ``AUTOMATIC`` needs ``programs``

    Attributes:
        function: Heating or cooling.
        mode: Requested mode.
        set_point: Target value for manual mode.
        programs: Program numbers for automatic mode.
        activation_time: End of the boost or manual period, formatted as the
            API expects (e.g., "2024-01-01T10:00:00Z").
    """

    function: ThermostatFunction
    mode: ThermostatMode
    set_point: Measurement | None = None
    programs: list[int] | None = None
    activation_time: str | None = None

    def validate(self) -> bool:
        """Check that the companion field required by ``mode`` is present."""
        if self.mode is ThermostatMode.MANUAL:
            return self.set_point is not None
        if self.mode is ThermostatMode.BOOST:
            return self.activation_time is not None
        if self.mode is ThermostatMode.AUTOMATIC:
            return self.programs is not None
        return True


@dataclass
class SubscriptionInfo:
    """A webhook subscription for plant status notifications.

    Attributes:
        subscription_id: Subscription identifier.
        plant_id: Plant the subscription belongs to.
        endpoint_url: URL notifications are delivered to.
    """

    subscription_id: str
    plant_id: str | None = None
    endpoint_url: str | None = None
