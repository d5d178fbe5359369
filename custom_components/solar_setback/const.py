"""Constants for Solar Setback integration."""

from enum import StrEnum
from typing import Final

# Domain
DOMAIN: Final = "solar_setback"

# Configuration keys - entities
CONF_POWER_SENSOR_ENTITY: Final = "power_sensor_entity"  # Solar production or net grid power
CONF_SECONDARY_LOAD_ENTITY: Final = "secondary_load_entity"  # Optional: e.g. EV charger load
CONF_THERMOSTAT_ENTITY: Final = "thermostat_entity"  # climate.* with a cooling setpoint

# Configuration keys - behaviour
CONF_LEAD_TIME_HOURS: Final = "lead_time_hours"  # Monitoring starts T hours before sunset
CONF_THRESHOLD_HIGH: Final = "threshold_high"  # kW, export above this lowers setpoint
CONF_THRESHOLD_LOW: Final = "threshold_low"  # kW, export below this restores setpoint
CONF_SETPOINT_DELTA: Final = "setpoint_delta"  # Degrees subtracted from the setpoint
CONF_TEMPERATURE_UNIT: Final = "temperature_unit"
CONF_INVERT_POWER: Final = "invert_power"  # Net meters usually report export as negative
CONF_APPLY_IN_AUTO: Final = "apply_in_auto"  # Also act in heat_cool/auto mode
CONF_CHECK_INTERVAL_MINUTES: Final = "check_interval_minutes"
CONF_MIN_DWELL_MINUTES: Final = "min_dwell_minutes"  # Short-cycle protection

# Defaults
DEFAULT_LEAD_TIME_HOURS: Final = 2.0
DEFAULT_THRESHOLD_HIGH: Final = 1.0  # kW
DEFAULT_THRESHOLD_LOW: Final = 0.5  # kW
DEFAULT_SETPOINT_DELTA: Final = 2.0  # degrees
DEFAULT_INVERT_POWER: Final = False
DEFAULT_APPLY_IN_AUTO: Final = False
DEFAULT_CHECK_INTERVAL_MINUTES: Final = 15
DEFAULT_MIN_DWELL_MINUTES: Final = 10

# Validation limits
MIN_THRESHOLD_SEPARATION_KW: Final = 0.5  # High must be at least this far above low
MAX_LEAD_TIME_HOURS: Final = 12.0
MAX_SETPOINT_DELTA: Final = 10.0
MIN_CHECK_INTERVAL_MINUTES: Final = 1
MAX_CHECK_INTERVAL_MINUTES: Final = 120
MAX_MIN_DWELL_MINUTES: Final = 240

# Unit conversion
WATTS_PER_KILOWATT: Final = 1000.0
SETPOINT_COMPARE_DECIMALS: Final = 3  # Drop float noise after snapping

# Home Assistant state values treated as "no reading"
UNAVAILABLE_STATES: Final = ("unknown", "unavailable", "none", "")

# Climate attributes
ATTR_TARGET_TEMP_HIGH: Final = "target_temp_high"
ATTR_TARGET_TEMP_LOW: Final = "target_temp_low"


class ThermostatMode(StrEnum):
    """Thermostat operating mode as seen by the controller."""

    PRIMARY = "primary"  # HVAC cool - always applicable
    SECONDARY = "secondary"  # HVAC heat_cool/auto - applicable only if enabled
    OTHER = "other"


class ControllerPhase(StrEnum):
    """Daily controller lifecycle phase."""

    IDLE = "idle"
    MONITORING = "monitoring"
    SETTLED = "settled"


class SetpointAction(StrEnum):
    """Action requested by the decision engine."""

    NONE = "none"
    LOWER = "lower"
    RESTORE = "restore"


class TemperatureUnit(StrEnum):
    """Thermostat temperature unit, decides setpoint rounding granularity."""

    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"


# Setpoint granularity per unit: half degrees for °C, whole degrees for °F
SETPOINT_GRANULARITY: Final[dict[TemperatureUnit, float]] = {
    TemperatureUnit.CELSIUS: 0.5,
    TemperatureUnit.FAHRENHEIT: 1.0,
}

UNIT_SYMBOLS: Final[dict[TemperatureUnit, str]] = {
    TemperatureUnit.CELSIUS: "°C",
    TemperatureUnit.FAHRENHEIT: "°F",
}

DEFAULT_TEMPERATURE_UNIT: Final = TemperatureUnit.CELSIUS

# Halt reasons shown on the phase sensor
HALT_REASON_MANUAL_OVERRIDE: Final = "manual_override"
HALT_REASON_NO_SUNSET: Final = "no_sunset"
HALT_REASON_WINDOW_PASSED: Final = "window_passed"
