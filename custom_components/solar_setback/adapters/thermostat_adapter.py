"""Thermostat adapter for reading and writing the cooling setpoint.

Works with any climate entity. In cool mode the cooling setpoint is the
single `temperature` attribute; in heat_cool/auto mode it is the upper end
of the range (`target_temp_high`), and the lower end is written back
unchanged.
"""

import logging
from typing import Any

from homeassistant.components.climate import HVACMode
from homeassistant.const import ATTR_ENTITY_ID, ATTR_TEMPERATURE
from homeassistant.core import HomeAssistant, State
from homeassistant.exceptions import HomeAssistantError

from ..const import (
    ATTR_TARGET_TEMP_HIGH,
    ATTR_TARGET_TEMP_LOW,
    CONF_THERMOSTAT_ENTITY,
    UNAVAILABLE_STATES,
    ThermostatMode,
)

_LOGGER = logging.getLogger(__name__)

CLIMATE_DOMAIN = "climate"
SERVICE_SET_TEMPERATURE = "set_temperature"

HVAC_MODE_MAP: dict[str, ThermostatMode] = {
    HVACMode.COOL: ThermostatMode.PRIMARY,
    HVACMode.HEAT_COOL: ThermostatMode.SECONDARY,
    HVACMode.AUTO: ThermostatMode.SECONDARY,
}


class ThermostatReadError(HomeAssistantError):
    """Thermostat state could not be read."""


class ThermostatWriteError(HomeAssistantError):
    """Thermostat rejected or failed a setpoint write."""


def mode_from_state(state: State | None) -> ThermostatMode:
    """Map a climate state to ThermostatMode."""
    if state is None:
        return ThermostatMode.OTHER
    return HVAC_MODE_MAP.get(state.state, ThermostatMode.OTHER)


def setpoint_from_state(state: State | None) -> float | None:
    """Extract the cooling setpoint from a climate state.

    Returns:
        Setpoint, or None if the state carries no usable value
    """
    if state is None or str(state.state).lower() in UNAVAILABLE_STATES:
        return None

    raw = state.attributes.get(ATTR_TARGET_TEMP_HIGH)
    if raw is None:
        raw = state.attributes.get(ATTR_TEMPERATURE)
    if raw is None:
        return None

    try:
        return float(raw)
    except (ValueError, TypeError):
        _LOGGER.warning("Cannot parse setpoint from %s: %s", state.entity_id, raw)
        return None


class ThermostatAdapter:
    """Adapter for the controlled climate entity."""

    def __init__(self, hass: HomeAssistant, config: dict[str, Any]):
        """Initialize thermostat adapter.

        Args:
            hass: Home Assistant instance
            config: Configuration dictionary with entity IDs
        """
        self.hass = hass
        self.entity_id: str = config[CONF_THERMOSTAT_ENTITY]

    def is_available(self) -> bool:
        state = self.hass.states.get(self.entity_id)
        return state is not None and str(state.state).lower() not in UNAVAILABLE_STATES

    def read_mode(self) -> ThermostatMode:
        """Read current operating mode (OTHER when unavailable)."""
        return mode_from_state(self.hass.states.get(self.entity_id))

    def read_setpoint(self) -> float:
        """Read current cooling setpoint.

        Raises:
            ThermostatReadError: If the thermostat is unavailable or has no setpoint
        """
        value = setpoint_from_state(self.hass.states.get(self.entity_id))
        if value is None:
            raise ThermostatReadError(f"Thermostat {self.entity_id} has no cooling setpoint")
        return value

    async def async_write_setpoint(self, value: float) -> None:
        """Write a new cooling setpoint.

        Args:
            value: New setpoint, already rounded to the thermostat's step

        Raises:
            ThermostatWriteError: If the thermostat is unavailable or the call fails
        """
        state = self.hass.states.get(self.entity_id)
        if state is None or str(state.state).lower() in UNAVAILABLE_STATES:
            raise ThermostatWriteError(f"Thermostat {self.entity_id} is unavailable")

        service_data: dict[str, Any] = {ATTR_ENTITY_ID: self.entity_id}
        low = state.attributes.get(ATTR_TARGET_TEMP_LOW)
        if state.attributes.get(ATTR_TARGET_TEMP_HIGH) is not None and low is not None:
            # Range mode - both ends are required by climate.set_temperature
            service_data[ATTR_TARGET_TEMP_HIGH] = value
            service_data[ATTR_TARGET_TEMP_LOW] = low
        else:
            service_data[ATTR_TEMPERATURE] = value

        try:
            await self.hass.services.async_call(
                CLIMATE_DOMAIN,
                SERVICE_SET_TEMPERATURE,
                service_data,
                blocking=True,
            )
        except (HomeAssistantError, OSError, ValueError) as err:
            raise ThermostatWriteError(
                f"Failed to set cooling setpoint on {self.entity_id}: {err}"
            ) from err

        _LOGGER.debug("Wrote cooling setpoint %s to %s", value, self.entity_id)
