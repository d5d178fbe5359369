"""Pytest configuration for Solar Setback tests."""

import warnings
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from homeassistant.core import State

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

# Filter warnings
warnings.filterwarnings("ignore", category=DeprecationWarning, module="homeassistant")

POWER_ENTITY = "sensor.grid_power"
SECONDARY_ENTITY = "sensor.ev_charger_power"
THERMOSTAT_ENTITY = "climate.living_room"

COORDINATOR_MODULE = "custom_components.solar_setback.coordinator"

# Sunset used by coordinator tests; with a 2 h lead the window is 18:00-20:00 UTC
SUNSET_TIME = time(20, 0)


@pytest.fixture(autouse=True)
def setup_frame_helper(monkeypatch):
    """Set up the frame helper for all tests."""
    from homeassistant.helpers import frame

    # Mock the report_usage function to avoid frame helper errors
    monkeypatch.setattr(frame, "report_usage", Mock())

    yield


# Common mock helper functions
def create_mock_hass() -> MagicMock:
    """Create a mock Home Assistant instance backed by a plain state dict.

    States are stored on hass.mock_states; use set_state() to change them.
    climate.set_temperature calls are echoed back into the thermostat state
    the way a real climate entity would report them.
    """
    hass = MagicMock()
    hass.data = {}
    hass.config = MagicMock()
    hass.config.latitude = 33.4
    hass.config.config_dir = "/tmp/test"
    hass.loop = MagicMock()
    hass.loop.call_soon_threadsafe = MagicMock()
    # Coroutines handed to the event loop by callbacks, awaited by run_pending_tasks()
    hass.pending_tasks = []
    hass.async_create_task = MagicMock(side_effect=hass.pending_tasks.append)

    hass.mock_states = {}
    hass.states = MagicMock()
    hass.states.get = MagicMock(side_effect=lambda entity_id: hass.mock_states.get(entity_id))

    async def _echo_service_call(domain, service, data, blocking=False):
        entity_id = data["entity_id"]
        old_state = hass.mock_states[entity_id]
        attributes = dict(old_state.attributes)
        for key in ("temperature", "target_temp_high", "target_temp_low"):
            if key in data:
                attributes[key] = data[key]
        hass.mock_states[entity_id] = State(entity_id, old_state.state, attributes)

    hass.services = MagicMock()
    hass.services.async_call = AsyncMock(side_effect=_echo_service_call)
    return hass


async def run_pending_tasks(hass: MagicMock) -> None:
    """Await coroutines scheduled through hass.async_create_task, in order."""
    while hass.pending_tasks:
        await hass.pending_tasks.pop(0)


def set_state(hass: MagicMock, entity_id: str, state: str, **attributes: Any) -> State:
    """Set an entity state on a mock hass and return it."""
    new_state = State(entity_id, state, attributes)
    hass.mock_states[entity_id] = new_state
    return new_state


def set_power(hass: MagicMock, watts: float, entity_id: str = POWER_ENTITY) -> State:
    return set_state(hass, entity_id, str(watts), unit_of_measurement="W")


def set_thermostat(hass: MagicMock, hvac_mode: str = "cool", temperature: float = 24.0) -> State:
    return set_state(hass, THERMOSTAT_ENTITY, hvac_mode, temperature=temperature)


def base_config(**overrides: Any) -> dict[str, Any]:
    """Config entry data with entity selections and default settings."""
    config: dict[str, Any] = {
        "power_sensor_entity": POWER_ENTITY,
        "thermostat_entity": THERMOSTAT_ENTITY,
        "lead_time_hours": 2.0,
        "threshold_high": 1.0,
        "threshold_low": 0.5,
        "setpoint_delta": 2.0,
        "temperature_unit": "celsius",
        "invert_power": False,
        "apply_in_auto": False,
        "check_interval_minutes": 15,
        "min_dwell_minutes": 10,
    }
    config.update(overrides)
    return config


def create_mock_entry(data: dict[str, Any] | None = None, options: dict[str, Any] | None = None):
    """Create a mock config entry with real dicts for data/options."""
    entry = MagicMock()
    entry.entry_id = "test_entry"
    entry.title = "Solar Setback (Living Room)"
    entry.data = data if data is not None else base_config()
    entry.options = options if options is not None else {}
    return entry


@dataclass
class ScheduledTimer:
    """A timer registered through one of the event helpers."""

    when: datetime | float
    action: Any
    cancel: Mock

    @property
    def cancelled(self) -> bool:
        return self.cancel.called


class FakeScheduler:
    """Record timers and subscriptions instead of arming them."""

    def __init__(self):
        self.point_in_time: list[ScheduledTimer] = []
        self.call_later: list[ScheduledTimer] = []
        self.subscriptions: list[Mock] = []

    def track_point_in_time(self, _hass, action, point_in_time):
        timer = ScheduledTimer(point_in_time, action, Mock())
        self.point_in_time.append(timer)
        return timer.cancel

    def track_call_later(self, _hass, delay, action):
        timer = ScheduledTimer(delay, action, Mock())
        self.call_later.append(timer)
        return timer.cancel

    def subscribe(self, *_args, **_kwargs):
        unsub = Mock()
        self.subscriptions.append(unsub)
        return unsub

    def active_points(self) -> list[datetime]:
        return [timer.when for timer in self.point_in_time if not timer.cancelled]

    def active_retries(self) -> list[float]:
        return [timer.when for timer in self.call_later if not timer.cancelled]


@pytest.fixture
def scheduler(monkeypatch) -> FakeScheduler:
    """Patch the coordinator's event helpers with a recording scheduler."""
    fake = FakeScheduler()
    monkeypatch.setattr(f"{COORDINATOR_MODULE}.async_track_point_in_time", fake.track_point_in_time)
    monkeypatch.setattr(f"{COORDINATOR_MODULE}.async_call_later", fake.track_call_later)
    monkeypatch.setattr(f"{COORDINATOR_MODULE}.async_track_state_change_event", fake.subscribe)
    monkeypatch.setattr(f"{COORDINATOR_MODULE}.async_track_sunrise", fake.subscribe)
    return fake


def patch_sunset(monkeypatch, sunset_time: time | None = SUNSET_TIME) -> None:
    """Make the coordinator see sunset at the same UTC time every day.

    None simulates a location where the sun does not set.
    """

    def _get_sunset(_hass, day: date) -> datetime | None:
        if sunset_time is None:
            return None
        return datetime.combine(day, sunset_time, tzinfo=timezone.utc)

    monkeypatch.setattr(f"{COORDINATOR_MODULE}.get_sunset", _get_sunset)


def create_coordinator(hass: MagicMock, **config_overrides: Any):
    """Build a coordinator wired to real adapters on a mock hass."""
    from custom_components.solar_setback.adapters.power_adapter import PowerAdapter
    from custom_components.solar_setback.adapters.thermostat_adapter import ThermostatAdapter
    from custom_components.solar_setback.control.config import ControllerConfig
    from custom_components.solar_setback.coordinator import SolarSetbackCoordinator

    config = base_config(**config_overrides)
    controller_config = ControllerConfig.from_mapping(config)
    controller_config.validate()
    return SolarSetbackCoordinator(
        hass=hass,
        power_adapter=PowerAdapter(hass, config),
        thermostat_adapter=ThermostatAdapter(hass, config),
        controller_config=controller_config,
        entry=create_mock_entry(config),
    )


def written_setpoints(hass: MagicMock) -> list[float]:
    """Setpoints passed to climate.set_temperature, in call order."""
    values = []
    for call in hass.services.async_call.await_args_list:
        data = call.args[2]
        values.append(data.get("target_temp_high", data.get("temperature")))
    return values


@pytest.fixture
def mock_hass() -> MagicMock:
    return create_mock_hass()
