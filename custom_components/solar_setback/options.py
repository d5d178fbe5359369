"""Options flow for Solar Setback integration.

Also holds the settings schema and validation shared with the config flow.
"""

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
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
    MAX_CHECK_INTERVAL_MINUTES,
    MAX_LEAD_TIME_HOURS,
    MAX_MIN_DWELL_MINUTES,
    MAX_SETPOINT_DELTA,
    MIN_CHECK_INTERVAL_MINUTES,
    TemperatureUnit,
)
from .control.config import ConfigurationInvalid, ControllerConfig

_LOGGER = logging.getLogger(__name__)

SETTINGS_KEYS = (
    CONF_LEAD_TIME_HOURS,
    CONF_THRESHOLD_HIGH,
    CONF_THRESHOLD_LOW,
    CONF_SETPOINT_DELTA,
    CONF_TEMPERATURE_UNIT,
    CONF_INVERT_POWER,
    CONF_APPLY_IN_AUTO,
    CONF_CHECK_INTERVAL_MINUTES,
    CONF_MIN_DWELL_MINUTES,
)


def _number(min_value: float, max_value: float, step: float, unit: str) -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=min_value,
            max=max_value,
            step=step,
            unit_of_measurement=unit,
            mode=selector.NumberSelectorMode.BOX,
        )
    )


def build_settings_schema(defaults: Mapping[str, Any]) -> dict[Any, Any]:
    """Build the settings part of the form with current values as defaults."""
    return {
        vol.Required(
            CONF_LEAD_TIME_HOURS,
            default=defaults.get(CONF_LEAD_TIME_HOURS, DEFAULT_LEAD_TIME_HOURS),
        ): _number(0.25, MAX_LEAD_TIME_HOURS, 0.25, "h"),
        vol.Required(
            CONF_THRESHOLD_HIGH,
            default=defaults.get(CONF_THRESHOLD_HIGH, DEFAULT_THRESHOLD_HIGH),
        ): _number(0.0, 100.0, 0.1, "kW"),
        vol.Required(
            CONF_THRESHOLD_LOW,
            default=defaults.get(CONF_THRESHOLD_LOW, DEFAULT_THRESHOLD_LOW),
        ): _number(-100.0, 100.0, 0.1, "kW"),
        vol.Required(
            CONF_SETPOINT_DELTA,
            default=defaults.get(CONF_SETPOINT_DELTA, DEFAULT_SETPOINT_DELTA),
        ): _number(0.5, MAX_SETPOINT_DELTA, 0.5, "°"),
        vol.Required(
            CONF_TEMPERATURE_UNIT,
            default=defaults.get(CONF_TEMPERATURE_UNIT, DEFAULT_TEMPERATURE_UNIT),
        ): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=[unit.value for unit in TemperatureUnit],
                translation_key=CONF_TEMPERATURE_UNIT,
            )
        ),
        vol.Optional(
            CONF_INVERT_POWER,
            default=defaults.get(CONF_INVERT_POWER, DEFAULT_INVERT_POWER),
        ): selector.BooleanSelector(),
        vol.Optional(
            CONF_APPLY_IN_AUTO,
            default=defaults.get(CONF_APPLY_IN_AUTO, DEFAULT_APPLY_IN_AUTO),
        ): selector.BooleanSelector(),
        vol.Required(
            CONF_CHECK_INTERVAL_MINUTES,
            default=defaults.get(CONF_CHECK_INTERVAL_MINUTES, DEFAULT_CHECK_INTERVAL_MINUTES),
        ): _number(MIN_CHECK_INTERVAL_MINUTES, MAX_CHECK_INTERVAL_MINUTES, 1, "min"),
        vol.Required(
            CONF_MIN_DWELL_MINUTES,
            default=defaults.get(CONF_MIN_DWELL_MINUTES, DEFAULT_MIN_DWELL_MINUTES),
        ): _number(0, MAX_MIN_DWELL_MINUTES, 1, "min"),
    }


def validate_settings(user_input: Mapping[str, Any]) -> dict[str, str]:
    """Validate settings the same way activation does.

    Returns:
        Form errors keyed by field ("base" for cross-field errors), empty if valid
    """
    try:
        ControllerConfig.from_mapping(user_input).validate()
    except ConfigurationInvalid as err:
        _LOGGER.debug("Settings rejected: %s", err)
        if err.error_key == "threshold_separation":
            return {CONF_THRESHOLD_LOW: err.error_key}
        return {"base": err.error_key}
    return {}


class SolarSetbackOptionsFlow(config_entries.OptionsFlow):
    """Handle options flow for Solar Setback."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Manage settings. Entity selections are fixed at setup."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_settings(user_input)
            if not errors:
                return self.async_create_entry(
                    title="",
                    data={key: user_input[key] for key in SETTINGS_KEYS if key in user_input},
                )

        current = dict(self.config_entry.data)
        current.update(self.config_entry.options)
        if user_input is not None:
            current.update(user_input)

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(build_settings_schema(current)),
            errors=errors,
        )
