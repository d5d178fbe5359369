"""Power sensor adapter.

Reads the solar production / net grid power sensor and the optional
secondary-load sensor from Home Assistant entities. All readings are
normalised to watts using the entity's unit_of_measurement.
"""

import logging
from typing import Any

from homeassistant.const import ATTR_UNIT_OF_MEASUREMENT, UnitOfPower
from homeassistant.core import HomeAssistant, State
from homeassistant.exceptions import HomeAssistantError

from ..const import (
    CONF_POWER_SENSOR_ENTITY,
    CONF_SECONDARY_LOAD_ENTITY,
    UNAVAILABLE_STATES,
    WATTS_PER_KILOWATT,
)

_LOGGER = logging.getLogger(__name__)

# Multiplier to convert a reading to W
POWER_UNIT_FACTORS: dict[str, float] = {
    UnitOfPower.WATT: 1.0,
    UnitOfPower.KILO_WATT: WATTS_PER_KILOWATT,
    UnitOfPower.MEGA_WATT: WATTS_PER_KILOWATT * WATTS_PER_KILOWATT,
}


class PowerReadError(HomeAssistantError):
    """Power sensor has no usable reading."""


def parse_power_state(state: State | None) -> float | None:
    """Convert a power sensor state to W.

    Args:
        state: Home Assistant state object (may be None)

    Returns:
        Power in W, or None if the state is missing or not numeric
    """
    if state is None or str(state.state).lower() in UNAVAILABLE_STATES:
        return None

    try:
        value = float(state.state)
    except (ValueError, TypeError):
        _LOGGER.warning("Cannot parse power from %s: %s", state.entity_id, state.state)
        return None

    unit = state.attributes.get(ATTR_UNIT_OF_MEASUREMENT, UnitOfPower.WATT)
    factor = POWER_UNIT_FACTORS.get(unit)
    if factor is None:
        _LOGGER.warning(
            "Unsupported power unit '%s' on %s, assuming W", unit, state.entity_id
        )
        factor = 1.0
    return value * factor


class PowerAdapter:
    """Adapter for reading power entities."""

    def __init__(self, hass: HomeAssistant, config: dict[str, Any]):
        """Initialize power adapter.

        Args:
            hass: Home Assistant instance
            config: Configuration dictionary with entity IDs
        """
        self.hass = hass
        self.power_entity: str = config[CONF_POWER_SENSOR_ENTITY]
        self.secondary_entity: str | None = config.get(CONF_SECONDARY_LOAD_ENTITY)  # Optional

    def read_power(self) -> float:
        """Read current power in W.

        Raises:
            PowerReadError: If the sensor is unavailable or not numeric
        """
        value = parse_power_state(self.hass.states.get(self.power_entity))
        if value is None:
            raise PowerReadError(f"Power sensor {self.power_entity} has no usable reading")
        return value

    def read_secondary_load(self) -> float:
        """Read secondary load in W, 0 when not configured or unavailable."""
        if not self.secondary_entity:
            return 0.0

        value = parse_power_state(self.hass.states.get(self.secondary_entity))
        if value is None:
            _LOGGER.debug(
                "Secondary load sensor %s unavailable, treating as 0 W", self.secondary_entity
            )
            return 0.0
        return value
