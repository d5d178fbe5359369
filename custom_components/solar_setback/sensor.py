"""Sensor entities for Solar Setback.

Diagnostic sensors exposing the controller phase, the export reading it last
acted on, today's monitoring window and the setpoints it manages.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfPower
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN, ControllerPhase
from .coordinator import SolarSetbackCoordinator

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class SolarSetbackSensorEntityDescription(SensorEntityDescription):
    """Describes Solar Setback sensor entity."""

    value_fn: Callable[[dict[str, Any]], Any]
    uses_thermostat_unit: bool = False


def _setpoint_value(key: str) -> Callable[[dict[str, Any]], Any]:
    return lambda data: data.get(key)


SENSORS: tuple[SolarSetbackSensorEntityDescription, ...] = (
    SolarSetbackSensorEntityDescription(
        key="phase",
        translation_key="phase",
        icon="mdi:solar-power-variant",
        device_class=SensorDeviceClass.ENUM,
        options=[phase.value for phase in ControllerPhase],
        value_fn=lambda data: str(data["phase"]) if data.get("phase") else None,
    ),
    SolarSetbackSensorEntityDescription(
        key="effective_power",
        translation_key="effective_power",
        device_class=SensorDeviceClass.POWER,
        native_unit_of_measurement=UnitOfPower.WATT,
        state_class=SensorStateClass.MEASUREMENT,
        suggested_display_precision=0,
        value_fn=lambda data: data.get("last_effective_power"),
    ),
    SolarSetbackSensorEntityDescription(
        key="window_start",
        translation_key="window_start",
        icon="mdi:weather-sunset-down",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=lambda data: data.get("window_open_at"),
    ),
    SolarSetbackSensorEntityDescription(
        key="window_end",
        translation_key="window_end",
        icon="mdi:weather-sunset",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=lambda data: data.get("window_close_at"),
    ),
    SolarSetbackSensorEntityDescription(
        key="last_action_at",
        translation_key="last_action_at",
        icon="mdi:history",
        device_class=SensorDeviceClass.TIMESTAMP,
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda data: data.get("last_action_at"),
    ),
    SolarSetbackSensorEntityDescription(
        key="baseline_setpoint",
        translation_key="baseline_setpoint",
        icon="mdi:thermometer",
        device_class=SensorDeviceClass.TEMPERATURE,
        uses_thermostat_unit=True,
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=_setpoint_value("baseline_setpoint"),
    ),
    SolarSetbackSensorEntityDescription(
        key="applied_setpoint",
        translation_key="applied_setpoint",
        icon="mdi:thermometer-chevron-down",
        device_class=SensorDeviceClass.TEMPERATURE,
        uses_thermostat_unit=True,
        value_fn=_setpoint_value("applied_setpoint"),
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Solar Setback sensor entities from a config entry."""
    coordinator: SolarSetbackCoordinator = hass.data[DOMAIN][entry.entry_id]

    async_add_entities(
        SolarSetbackSensor(coordinator, entry, description) for description in SENSORS
    )


class SolarSetbackSensor(CoordinatorEntity[SolarSetbackCoordinator], SensorEntity):
    """Solar Setback diagnostic sensor."""

    entity_description: SolarSetbackSensorEntityDescription
    coordinator: SolarSetbackCoordinator
    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: SolarSetbackCoordinator,
        entry: ConfigEntry,
        description: SolarSetbackSensorEntityDescription,
    ):
        """Initialize sensor."""
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"{entry.entry_id}_{description.key}"
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
            name=entry.title,
            manufacturer="Solar Setback",
            model="Sunset Cooling Controller",
        )
        if description.uses_thermostat_unit:
            # Setpoints are written in the thermostat's own unit
            self._attr_native_unit_of_measurement = coordinator.controller_config.unit_symbol

    @property
    def native_value(self) -> float | str | datetime | None:
        """Return the state of the sensor."""
        if not self.coordinator.data:
            return None
        try:
            return self.entity_description.value_fn(self.coordinator.data)
        except (KeyError, TypeError) as err:
            _LOGGER.warning(
                "Error getting value for %s: %s", self.entity_description.key, err
            )
            return None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return additional state attributes based on sensor type."""
        data = self.coordinator.data
        if not data or self.entity_description.key != "phase":
            return {}

        return {
            "lowered": data.get("lowered", False),
            "halt_reason": data.get("halt_reason"),
            "last_action": str(data.get("last_action")),
            "actions_today": data.get("actions_today", 0),
            "threshold_high_w": data.get("threshold_high_w"),
            "threshold_low_w": data.get("threshold_low_w"),
        }
