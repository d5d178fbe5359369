"""Tests for the config and options flows.

Tests the configuration flow:
1. Power meter and thermostat selection (async_step_user)
2. Thresholds and timing (async_step_settings)
3. Options flow re-validating the same settings
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from homeassistant.const import UnitOfTemperature
from homeassistant.core import HomeAssistant, State
from homeassistant.data_entry_flow import FlowResultType

from custom_components.solar_setback.config_flow import SolarSetbackConfigFlow
from custom_components.solar_setback.const import (
    CONF_LEAD_TIME_HOURS,
    CONF_POWER_SENSOR_ENTITY,
    CONF_SECONDARY_LOAD_ENTITY,
    CONF_TEMPERATURE_UNIT,
    CONF_THERMOSTAT_ENTITY,
    CONF_THRESHOLD_HIGH,
    CONF_THRESHOLD_LOW,
    TemperatureUnit,
)
from custom_components.solar_setback.options import (
    SolarSetbackOptionsFlow,
    validate_settings,
)
from tests.conftest import POWER_ENTITY, THERMOSTAT_ENTITY, base_config, create_mock_entry

ENTITY_KEYS = (CONF_POWER_SENSOR_ENTITY, CONF_THERMOSTAT_ENTITY, CONF_SECONDARY_LOAD_ENTITY)


def _settings(**overrides) -> dict:
    """Settings step input without the entity selections."""
    return {
        key: value for key, value in base_config(**overrides).items() if key not in ENTITY_KEYS
    }


@pytest.fixture
def mock_hass():
    """Create mock Home Assistant instance with a meter and a thermostat."""
    hass = MagicMock(spec=HomeAssistant)
    hass.config = MagicMock()
    hass.config.units.temperature_unit = UnitOfTemperature.CELSIUS

    mock_states = {
        POWER_ENTITY: State(POWER_ENTITY, "-850", {"unit_of_measurement": "W"}),
        THERMOSTAT_ENTITY: State(
            THERMOSTAT_ENTITY, "cool", {"temperature": 24.0, "friendly_name": "Living Room"}
        ),
    }
    hass.states = MagicMock()
    hass.states.get = lambda entity_id: mock_states.get(entity_id)
    return hass


@pytest.fixture
def config_flow(mock_hass):
    flow = SolarSetbackConfigFlow()
    flow.hass = mock_hass
    flow.async_set_unique_id = AsyncMock()
    flow._abort_if_unique_id_configured = MagicMock()
    return flow


class TestConfigFlowUserStep:
    """Entity selection."""

    async def test_user_step_shows_form(self, config_flow):
        result = await config_flow.async_step_user()

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "user"
        assert CONF_POWER_SENSOR_ENTITY in result["data_schema"].schema
        assert CONF_THERMOSTAT_ENTITY in result["data_schema"].schema

    async def test_valid_entities_proceed_to_settings(self, config_flow):
        result = await config_flow.async_step_user(
            user_input={
                CONF_POWER_SENSOR_ENTITY: POWER_ENTITY,
                CONF_THERMOSTAT_ENTITY: THERMOSTAT_ENTITY,
            }
        )

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "settings"
        assert config_flow._data[CONF_THERMOSTAT_ENTITY] == THERMOSTAT_ENTITY
        assert config_flow._data[CONF_SECONDARY_LOAD_ENTITY] is None
        config_flow.async_set_unique_id.assert_awaited_once_with(THERMOSTAT_ENTITY)

    async def test_missing_thermostat(self, config_flow):
        result = await config_flow.async_step_user(
            user_input={
                CONF_POWER_SENSOR_ENTITY: POWER_ENTITY,
                CONF_THERMOSTAT_ENTITY: "climate.nonexistent",
            }
        )

        assert result["step_id"] == "user"
        assert result["errors"] == {CONF_THERMOSTAT_ENTITY: "entity_not_found"}


class TestConfigFlowSettingsStep:
    """Thresholds and timing."""

    async def test_settings_creates_entry(self, config_flow):
        config_flow._data = {
            CONF_POWER_SENSOR_ENTITY: POWER_ENTITY,
            CONF_THERMOSTAT_ENTITY: THERMOSTAT_ENTITY,
            CONF_SECONDARY_LOAD_ENTITY: None,
        }

        result = await config_flow.async_step_settings(user_input=_settings())

        assert result["type"] == FlowResultType.CREATE_ENTRY
        assert result["title"] == "Solar Setback (Living Room)"
        assert result["data"][CONF_THRESHOLD_HIGH] == 1.0
        assert result["data"][CONF_POWER_SENSOR_ENTITY] == POWER_ENTITY

    async def test_threshold_margin_rejected(self, config_flow):
        config_flow._data = {CONF_THERMOSTAT_ENTITY: THERMOSTAT_ENTITY}

        result = await config_flow.async_step_settings(
            user_input=_settings(threshold_high=1.0, threshold_low=0.8)
        )

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "settings"
        assert result["errors"] == {CONF_THRESHOLD_LOW: "threshold_separation"}

    async def test_default_unit_follows_unit_system(self, config_flow, mock_hass):
        mock_hass.config.units.temperature_unit = UnitOfTemperature.FAHRENHEIT

        assert config_flow._default_temperature_unit() == TemperatureUnit.FAHRENHEIT


class TestValidateSettings:
    """Shared validation used by both flows."""

    def test_valid(self):
        assert validate_settings(_settings()) == {}

    def test_bad_value(self):
        assert validate_settings(_settings(temperature_unit="kelvin")) == {"base": "invalid_config"}

    def test_zero_lead_time(self):
        assert validate_settings(_settings(lead_time_hours=0)) == {"base": "invalid_config"}


class TestOptionsFlow:
    """Changing settings after setup."""

    @pytest.fixture
    def options_flow(self):
        entry = create_mock_entry(options={CONF_LEAD_TIME_HOURS: 3.0})
        flow = SolarSetbackOptionsFlow()
        flow.hass = MagicMock()
        flow.hass.config_entries.async_get_known_entry.return_value = entry
        flow.handler = entry.entry_id
        return flow

    async def test_form_uses_current_options(self, options_flow):
        result = await options_flow.async_step_init()

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "init"
        defaults = {str(key): key.default() for key in result["data_schema"].schema}
        assert defaults[CONF_LEAD_TIME_HOURS] == 3.0
        assert defaults[CONF_TEMPERATURE_UNIT] == "celsius"

    async def test_saves_only_settings(self, options_flow):
        user_input = _settings(threshold_high=2.0, threshold_low=1.0)
        user_input[CONF_THERMOSTAT_ENTITY] = "climate.other"

        result = await options_flow.async_step_init(user_input=user_input)

        assert result["type"] == FlowResultType.CREATE_ENTRY
        assert result["data"][CONF_THRESHOLD_HIGH] == 2.0
        assert CONF_THERMOSTAT_ENTITY not in result["data"]

    async def test_rejects_margin(self, options_flow):
        result = await options_flow.async_step_init(
            user_input=_settings(threshold_high=1.0, threshold_low=0.9)
        )

        assert result["type"] == FlowResultType.FORM
        assert result["errors"] == {CONF_THRESHOLD_LOW: "threshold_separation"}
