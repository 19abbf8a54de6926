"""Basic usage example for pysmarther library."""

import asyncio
import json
import os
from pathlib import Path

from pysmarther import (
    AuthorizationInfo,
    Measurement,
    MeasurementUnit,
    SetStatusRequest,
    SmartherClient,
    ThermostatFunction,
    ThermostatMode,
)


async def main() -> None:
    """Demonstrate basic usage of pysmarther."""
    auth_file = Path(os.getenv("SMARTHER_AUTH_FILE", "smarther_auth.json"))
    info = AuthorizationInfo.from_dict(json.loads(auth_file.read_text()))

    def save(updated: AuthorizationInfo) -> None:
        auth_file.write_text(json.dumps(updated.to_dict(), indent=2))

    async with SmartherClient() as client:
        # Refreshes the saved token first if it has expired
        smarther = await client.resume(info, auto_refresh=True, on_authorization_updated=save)
        print("Connected to Smarther API")

        plants = await smarther.get_plants()
        print(f"Found {len(plants)} plant(s)")

        for plant in plants:
            print(f"\nPlant: {plant.name}")
            print(f"  ID: {plant.id}")

            topology = await smarther.get_topology(plant.id)
            for module in topology.modules:
                print(f"\n  Module: {module.name} ({module.device})")

                status = await smarther.get_device_status(plant.id, module.id)
                for thermostat in status.chronothermostats:
                    print(f"    Function: {thermostat.function.value}")
                    print(f"    Mode: {thermostat.mode.value}")
                    if thermostat.temperature is not None:
                        print(f"    Temperature: {thermostat.temperature.value}{thermostat.temperature.unit.value}")
                    if thermostat.humidity is not None:
                        print(f"    Humidity: {thermostat.humidity.value}%")
                    print(f"    Heating: {thermostat.is_load_active}")

                # Manual mode needs a set point
                print("\n  Setting manual mode at 21C...")
                await smarther.set_device_status(
                    plant.id,
                    module.id,
                    SetStatusRequest(
                        function=ThermostatFunction.HEATING,
                        mode=ThermostatMode.MANUAL,
                        set_point=Measurement(value=21.0, unit=MeasurementUnit.CELSIUS),
                    ),
                )


if __name__ == "__main__":
    asyncio.run(main())
