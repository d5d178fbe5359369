"""The Solar Setback integration.

Solar Setback shifts cooling load into the last hours of solar surplus. From
T hours before sunset until sunset it lowers a thermostat's cooling setpoint
while export stays above a high threshold, and restores it when export drops
below a low threshold or the sun sets. A manual setpoint change stops the
automation for the rest of the day.
"""

import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryError, ConfigEntryNotReady
from homeassistant.helpers.update_coordinator import UpdateFailed

from .const import DOMAIN
from .control.config import ConfigurationInvalid, ControllerConfig
from .coordinator import SolarSetbackCoordinator

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
]


def get_entry_config(entry: ConfigEntry) -> dict[str, Any]:
    """Merge config entry data with options (options win)."""
    config = dict(entry.data)
    config.update(entry.options)
    return config


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Solar Setback from a config entry."""
    _LOGGER.info("Setting up Solar Setback integration")

    hass.data.setdefault(DOMAIN, {})

    # Invalid thresholds are fatal - monitoring must not start
    try:
        coordinator = _create_coordinator(hass, entry)
    except ConfigurationInvalid as err:
        raise ConfigEntryError(f"Invalid Solar Setback configuration: {err}") from err

    # First refresh confirms the thermostat entity is loaded
    # If not ready, raises ConfigEntryNotReady and HA will retry automatically
    try:
        await coordinator.async_config_entry_first_refresh()
    except (UpdateFailed, TimeoutError, OSError) as err:
        raise ConfigEntryNotReady(
            f"Thermostat {coordinator.thermostat.entity_id} is not available yet"
        ) from err

    hass.data[DOMAIN][entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    await coordinator.async_activate()

    # Listen for options updates
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info("Solar Setback setup complete")
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.info("Unloading Solar Setback integration")

    coordinator: SolarSetbackCoordinator | None = hass.data[DOMAIN].get(entry.entry_id)

    # Cancel timers and put the setpoint back before entities go away
    if coordinator:
        try:
            await coordinator.async_shutdown()
            _LOGGER.debug("Coordinator shutdown complete")
        except (OSError, RuntimeError, ValueError) as err:
            _LOGGER.warning("Failed to shutdown coordinator cleanly: %s", err)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload config entry when options change.

    Configuration is immutable per activation cycle, so any change means a
    fresh coordinator.
    """
    _LOGGER.info("Solar Setback options changed, reloading integration")
    await hass.config_entries.async_reload(entry.entry_id)


def _create_coordinator(
    hass: HomeAssistant,
    entry: ConfigEntry,
) -> SolarSetbackCoordinator:
    """Create coordinator with dependency injection.

    Raises:
        ConfigurationInvalid: If the configuration fails validation
    """
    from .adapters.power_adapter import PowerAdapter
    from .adapters.thermostat_adapter import ThermostatAdapter

    config = get_entry_config(entry)

    controller_config = ControllerConfig.from_mapping(config)
    controller_config.validate()

    return SolarSetbackCoordinator(
        hass=hass,
        power_adapter=PowerAdapter(hass, config),
        thermostat_adapter=ThermostatAdapter(hass, config),
        controller_config=controller_config,
        entry=entry,
    )
