"""Controller configuration for one activation cycle.

Built from the merged config entry data/options and validated before the
controller is allowed to start monitoring.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from ..const import (
    CONF_APPLY_IN_AUTO,
    CONF_CHECK_INTERVAL_MINUTES,
    CONF_INVERT_POWER,
    CONF_LEAD_TIME_HOURS,
    CONF_MIN_DWELL_MINUTES,
    CONF_SETPOINT_DELTA,
    CONF_TEMPERATURE_UNIT,
    CONF_THRESHOLD_HIGH,
    CONF_THRESHOLD_LOW,
    DEFAULT_APPLY_IN_AUTO,
    DEFAULT_CHECK_INTERVAL_MINUTES,
    DEFAULT_INVERT_POWER,
    DEFAULT_LEAD_TIME_HOURS,
    DEFAULT_MIN_DWELL_MINUTES,
    DEFAULT_SETPOINT_DELTA,
    DEFAULT_TEMPERATURE_UNIT,
    DEFAULT_THRESHOLD_HIGH,
    DEFAULT_THRESHOLD_LOW,
    MIN_THRESHOLD_SEPARATION_KW,
    SETPOINT_GRANULARITY,
    UNIT_SYMBOLS,
    TemperatureUnit,
)

_LOGGER = logging.getLogger(__name__)


class ConfigurationInvalid(ValueError):
    """Raised when a configuration must not be activated."""

    def __init__(self, message: str, error_key: str = "invalid_config") -> None:
        super().__init__(message)
        self.error_key = error_key


@dataclass(frozen=True)
class ControllerConfig:
    """Immutable controller settings.

    Thresholds are kept in kW as entered by the user; the decision engine
    converts them to W when comparing against readings.
    """

    lead_time: timedelta
    threshold_high_kw: float
    threshold_low_kw: float
    setpoint_delta: float
    temperature_unit: TemperatureUnit
    invert_power: bool
    apply_in_secondary_mode: bool
    poll_interval: timedelta
    minimum_dwell: timedelta

    @property
    def granularity(self) -> float:
        """Setpoint rounding step for the configured unit."""
        return SETPOINT_GRANULARITY[self.temperature_unit]

    @property
    def unit_symbol(self) -> str:
        return UNIT_SYMBOLS[self.temperature_unit]

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ControllerConfig":
        """Build configuration from config entry data merged with options.

        Raises:
            ConfigurationInvalid: If a value cannot be converted
        """
        try:
            unit = TemperatureUnit(config.get(CONF_TEMPERATURE_UNIT, DEFAULT_TEMPERATURE_UNIT))
            return cls(
                lead_time=timedelta(
                    hours=float(config.get(CONF_LEAD_TIME_HOURS, DEFAULT_LEAD_TIME_HOURS))
                ),
                threshold_high_kw=float(config.get(CONF_THRESHOLD_HIGH, DEFAULT_THRESHOLD_HIGH)),
                threshold_low_kw=float(config.get(CONF_THRESHOLD_LOW, DEFAULT_THRESHOLD_LOW)),
                setpoint_delta=float(config.get(CONF_SETPOINT_DELTA, DEFAULT_SETPOINT_DELTA)),
                temperature_unit=unit,
                invert_power=bool(config.get(CONF_INVERT_POWER, DEFAULT_INVERT_POWER)),
                apply_in_secondary_mode=bool(config.get(CONF_APPLY_IN_AUTO, DEFAULT_APPLY_IN_AUTO)),
                poll_interval=timedelta(
                    minutes=float(
                        config.get(CONF_CHECK_INTERVAL_MINUTES, DEFAULT_CHECK_INTERVAL_MINUTES)
                    )
                ),
                minimum_dwell=timedelta(
                    minutes=float(config.get(CONF_MIN_DWELL_MINUTES, DEFAULT_MIN_DWELL_MINUTES))
                ),
            )
        except (TypeError, ValueError) as err:
            raise ConfigurationInvalid(f"Invalid configuration value: {err}") from err

    def validate(self) -> None:
        """Reject configurations the controller cannot run safely.

        Raises:
            ConfigurationInvalid: If thresholds are too close or durations are invalid
        """
        separation = self.threshold_high_kw - self.threshold_low_kw
        # Small epsilon so 1.0/0.5 passes despite float representation
        if separation < MIN_THRESHOLD_SEPARATION_KW - 1e-9:
            _LOGGER.error(
                "Validation failed: low threshold (%.2f kW) must be at least %.1f kW "
                "below high threshold (%.2f kW)",
                self.threshold_low_kw,
                MIN_THRESHOLD_SEPARATION_KW,
                self.threshold_high_kw,
            )
            raise ConfigurationInvalid(
                f"Low threshold must be at least {MIN_THRESHOLD_SEPARATION_KW} kW "
                f"below high threshold (got {separation:.2f} kW)",
                error_key="threshold_separation",
            )

        if self.setpoint_delta <= 0:
            raise ConfigurationInvalid("Setpoint delta must be positive")
        if self.lead_time <= timedelta(0):
            raise ConfigurationInvalid("Lead time must be positive")
        if self.poll_interval <= timedelta(0):
            raise ConfigurationInvalid("Check interval must be positive")
        if self.minimum_dwell < timedelta(0):
            raise ConfigurationInvalid("Minimum dwell time cannot be negative")
