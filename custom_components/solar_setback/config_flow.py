"""Config flow for Solar Setback integration."""

import logging
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import UnitOfTemperature
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
    CONF_POWER_SENSOR_ENTITY,
    CONF_SECONDARY_LOAD_ENTITY,
    CONF_TEMPERATURE_UNIT,
    CONF_THERMOSTAT_ENTITY,
    DOMAIN,
    TemperatureUnit,
)
from .options import SolarSetbackOptionsFlow, build_settings_schema, validate_settings

_LOGGER = logging.getLogger(__name__)


class SolarSetbackConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Solar Setback."""

    VERSION = 1

    def __init__(self):
        """Initialize config flow."""
        self._data: dict[str, Any] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle the initial step - power meter and thermostat selection."""
        errors = {}

        if user_input is not None:
            thermostat = user_input[CONF_THERMOSTAT_ENTITY]
            await self.async_set_unique_id(thermostat)
            self._abort_if_unique_id_configured()

            for key in (CONF_POWER_SENSOR_ENTITY, CONF_THERMOSTAT_ENTITY):
                if not self.hass.states.get(user_input[key]):
                    errors[key] = "entity_not_found"

            if not errors:
                self._data[CONF_POWER_SENSOR_ENTITY] = user_input[CONF_POWER_SENSOR_ENTITY]
                self._data[CONF_THERMOSTAT_ENTITY] = thermostat
                self._data[CONF_SECONDARY_LOAD_ENTITY] = user_input.get(CONF_SECONDARY_LOAD_ENTITY)
                return await self.async_step_settings()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_POWER_SENSOR_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor", device_class="power")
                    ),
                    vol.Required(CONF_THERMOSTAT_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="climate")
                    ),
                    vol.Optional(CONF_SECONDARY_LOAD_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor", device_class="power")
                    ),
                }
            ),
            errors=errors,
        )

    async def async_step_settings(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Configure thresholds, timing and options."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_settings(user_input)
            if not errors:
                self._data.update(user_input)
                thermostat_state = self.hass.states.get(self._data[CONF_THERMOSTAT_ENTITY])
                name = (
                    thermostat_state.name if thermostat_state else self._data[CONF_THERMOSTAT_ENTITY]
                )
                return self.async_create_entry(
                    title=f"Solar Setback ({name})",
                    data=self._data,
                )

        defaults: dict[str, Any] = {CONF_TEMPERATURE_UNIT: self._default_temperature_unit()}
        if user_input is not None:
            defaults.update(user_input)

        return self.async_show_form(
            step_id="settings",
            data_schema=vol.Schema(build_settings_schema(defaults)),
            errors=errors,
        )

    def _default_temperature_unit(self) -> TemperatureUnit:
        """Match the Home Assistant unit system."""
        if self.hass.config.units.temperature_unit == UnitOfTemperature.FAHRENHEIT:
            return TemperatureUnit.FAHRENHEIT
        return TemperatureUnit.CELSIUS

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        """Create the options flow."""
        return SolarSetbackOptionsFlow()
