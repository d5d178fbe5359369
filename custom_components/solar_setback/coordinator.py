"""Lifecycle coordinator for Solar Setback.

Owns the daily controller state machine:

    IDLE --(sunset - T)--> MONITORING --(sunset)--> SETTLED --(sunrise)--> IDLE

While monitoring, power readings are evaluated on a fixed cadence, on every
power sensor update, and when the thermostat switches into an applicable
mode. A manual setpoint change stops monitoring for the rest of the day.

Every entry point (state-change events, timers, sunrise) funnels into one
asyncio.Lock, so an evaluation and its setpoint write never interleave with
override detection for the same state.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import (
    async_call_later,
    async_track_point_in_time,
    async_track_state_change_event,
    async_track_sunrise,
)
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .adapters.power_adapter import PowerAdapter, PowerReadError, parse_power_state
from .adapters.thermostat_adapter import (
    ThermostatAdapter,
    ThermostatReadError,
    ThermostatWriteError,
    mode_from_state,
    setpoint_from_state,
)
from .const import (
    DOMAIN,
    HALT_REASON_MANUAL_OVERRIDE,
    HALT_REASON_NO_SUNSET,
    HALT_REASON_WINDOW_PASSED,
    WATTS_PER_KILOWATT,
    ControllerPhase,
    SetpointAction,
    ThermostatMode,
)
from .control.config import ControllerConfig
from .control.decision import (
    calculate_effective_power,
    calculate_lowered_setpoint,
    decide,
    is_applicable_mode,
)
from .control.override import OverrideDetector
from .control.short_cycle import ShortCycleGuard
from .control.state import ControllerState
from .utils.time_utils import compute_monitoring_window, get_sunset, seconds_until

_LOGGER = logging.getLogger(__name__)


class SolarSetbackCoordinator(DataUpdateCoordinator):
    """Coordinate the daily setback cycle for one thermostat.

    Entities subscribe to this coordinator and are updated with a status
    snapshot after every evaluation and phase change. There is no periodic
    base-class refresh; the controller schedules its own timers.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        power_adapter: PowerAdapter,
        thermostat_adapter: ThermostatAdapter,
        controller_config: ControllerConfig,
        entry: ConfigEntry,
    ):
        """Initialize coordinator with dependency injection."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=DOMAIN,
            update_interval=None,
        )
        self.power = power_adapter
        self.thermostat = thermostat_adapter
        self.controller_config = controller_config
        self.entry = entry

        self.guard = ShortCycleGuard(controller_config.minimum_dwell)
        self.override_detector = OverrideDetector()
        self.state = ControllerState()

        self._lock = asyncio.Lock()

        # Timer handles - unsubscribe callables from the event helpers
        self._unsub_window_open: Callable[[], None] | None = None
        self._unsub_window_close: Callable[[], None] | None = None
        self._unsub_poll_tick: Callable[[], None] | None = None
        self._unsub_retry: Callable[[], None] | None = None

        # Event subscriptions (state changes, sunrise)
        self._unsubscribers: list[Callable[[], None]] = []
        self._is_shut_down = False

    # ------------------------------------------------------------------
    # Host entry points
    # ------------------------------------------------------------------

    async def async_activate(self) -> None:
        """Subscribe to events and start today's cycle."""
        self._unsubscribers.append(
            async_track_state_change_event(
                self.hass, [self.power.power_entity], self._handle_power_state_event
            )
        )
        self._unsubscribers.append(
            async_track_state_change_event(
                self.hass, [self.thermostat.entity_id], self._handle_thermostat_state_event
            )
        )
        self._unsubscribers.append(async_track_sunrise(self.hass, self._handle_sunrise))

        _LOGGER.info(
            "Solar setback active: thermostat=%s, power=%s, high=%.2f kW, low=%.2f kW, "
            "delta=%.1f%s, lead=%s, check every %s, min dwell %s",
            self.thermostat.entity_id,
            self.power.power_entity,
            self.controller_config.threshold_high_kw,
            self.controller_config.threshold_low_kw,
            self.controller_config.setpoint_delta,
            self.controller_config.unit_symbol,
            self.controller_config.lead_time,
            self.controller_config.poll_interval,
            self.controller_config.minimum_dwell,
        )

        async with self._lock:
            await self._async_start_day()

    async def async_on_daily_reset(self) -> None:
        """Discard today's state and schedule the next window."""
        async with self._lock:
            _LOGGER.debug("Daily reset - clearing state for new day")
            if self.state.lowered:
                _LOGGER.warning(
                    "Daily reset while setpoint still lowered to %s%s (restore never confirmed)",
                    self.state.applied_setpoint,
                    self.controller_config.unit_symbol,
                )
                await self._async_restore_without_guard("daily reset")
            await self._async_start_day()

    async def async_on_power_event(self, raw_power: float) -> None:
        """Evaluate a pushed power reading (W)."""
        async with self._lock:
            if self.state.phase != ControllerPhase.MONITORING:
                return
            await self._async_evaluate(dt_util.now(), "power_event", raw_power=raw_power)

    async def async_on_mode_event(self, mode: ThermostatMode) -> None:
        """Re-check export when the thermostat enters an applicable mode."""
        async with self._lock:
            _LOGGER.debug("Thermostat mode changed to %s", mode)
            if (
                self.state.phase == ControllerPhase.MONITORING
                and not self.state.lowered
                and is_applicable_mode(mode, self.controller_config.apply_in_secondary_mode)
            ):
                await self._async_evaluate(dt_util.now(), "mode_change", mode=mode)

    async def async_on_setpoint_event(self, value: float) -> None:
        """Detect out-of-band setpoint changes."""
        async with self._lock:
            if not self.override_detector.is_override(value, self.state):
                return

            _LOGGER.warning(
                "Detected manual setpoint change to %s%s",
                value,
                self.controller_config.unit_symbol,
            )
            if self.state.phase == ControllerPhase.MONITORING or (
                self.state.phase == ControllerPhase.SETTLED and self.state.lowered
            ):
                self._halt_for_override()
                self._publish()

    async def async_on_tick(self) -> None:
        """Periodic evaluation; re-arms itself until the window closes."""
        async with self._lock:
            self._unsub_poll_tick = None
            if self.state.phase != ControllerPhase.MONITORING:
                _LOGGER.debug("Poll tick skipped because phase=%s", self.state.phase)
                return

            now = dt_util.now()
            await self._async_evaluate(now, "poll")
            if self.state.phase == ControllerPhase.MONITORING:
                self._schedule_poll_tick(now)

    async def async_on_window_open(self) -> None:
        """Window open timer fired."""
        async with self._lock:
            self._unsub_window_open = None
            if self.state.phase != ControllerPhase.IDLE or self.state.halt_reason:
                return
            await self._async_enter_monitoring(dt_util.now())

    async def async_on_window_close(self) -> None:
        """Window close timer fired: stop monitoring and restore if needed."""
        async with self._lock:
            self._unsub_window_close = None
            if self.state.phase != ControllerPhase.MONITORING:
                return

            self._cancel_poll_tick()
            self._cancel_retry()
            self.state.phase = ControllerPhase.SETTLED
            _LOGGER.info("■ Monitoring stopped at sunset (%s)", dt_util.now())

            if self.state.lowered:
                await self._async_settle_restore(dt_util.now())
            self._publish()

    async def async_on_retry(self) -> None:
        """Retry a denied or failed action."""
        async with self._lock:
            self._unsub_retry = None
            now = dt_util.now()
            if self.state.phase == ControllerPhase.MONITORING:
                await self._async_evaluate(now, "short_cycle_retry")
            elif self.state.phase == ControllerPhase.SETTLED and self.state.lowered:
                await self._async_settle_restore(now)
                self._publish()

    async def async_shutdown(self) -> None:
        """Clean shutdown of coordinator.

        Cancels all timers and subscriptions. If the setpoint is still at our
        lowered value, it is put back so an unload never strands it.
        """
        if self._is_shut_down:
            return
        self._is_shut_down = True
        _LOGGER.debug("Shutting down Solar Setback coordinator")

        while self._unsubscribers:
            unsub = self._unsubscribers.pop()
            unsub()

        async with self._lock:
            self._cancel_all_timers()
            await self._async_restore_without_guard("unload")
            self.state.phase = ControllerPhase.IDLE

        await super().async_shutdown()

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current status snapshot.

        Used by the first refresh to confirm the thermostat is reachable.
        """
        if not self.thermostat.is_available():
            raise UpdateFailed(f"Thermostat {self.thermostat.entity_id} is not available")
        return self._build_status()

    # ------------------------------------------------------------------
    # Event and timer callbacks
    # ------------------------------------------------------------------

    @callback
    def _handle_power_state_event(self, event: Event) -> None:
        value = parse_power_state(event.data.get("new_state"))
        if value is None:
            return
        self._create_guarded_task(self.async_on_power_event(value), "power event")

    @callback
    def _handle_thermostat_state_event(self, event: Event) -> None:
        old_state = event.data.get("old_state")
        new_state = event.data.get("new_state")
        if new_state is None:
            return

        new_mode = mode_from_state(new_state)
        if old_state is None or mode_from_state(old_state) != new_mode:
            self._create_guarded_task(self.async_on_mode_event(new_mode), "mode event")

        new_setpoint = setpoint_from_state(new_state)
        old_setpoint = setpoint_from_state(old_state)
        if new_setpoint is not None and new_setpoint != old_setpoint:
            self._create_guarded_task(
                self.async_on_setpoint_event(new_setpoint), "setpoint event"
            )

    @callback
    def _handle_sunrise(self) -> None:
        self._create_guarded_task(self.async_on_daily_reset(), "daily reset")

    @callback
    def _handle_window_open(self, _now: datetime) -> None:
        self._create_guarded_task(self.async_on_window_open(), "window open")

    @callback
    def _handle_window_close(self, _now: datetime) -> None:
        self._create_guarded_task(self.async_on_window_close(), "window close")

    @callback
    def _handle_poll_tick(self, _now: datetime) -> None:
        self._create_guarded_task(self.async_on_tick(), "poll tick")

    @callback
    def _handle_retry(self, _now: datetime) -> None:
        self._create_guarded_task(self.async_on_retry(), "retry")

    def _create_guarded_task(self, coro: Coroutine[Any, Any, None], job: str) -> None:
        self.hass.async_create_task(self._async_guarded(coro, job))

    async def _async_guarded(self, coro: Coroutine[Any, Any, None], job: str) -> None:
        """Run a job so one failure cannot break the daily schedule."""
        try:
            await coro
        except Exception as err:  # noqa: BLE001
            _LOGGER.error("Solar setback %s failed: %s", job, err, exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _async_start_day(self) -> None:
        """Create fresh state and schedule today's window. Lock must be held."""
        self._cancel_all_timers()
        self.state = ControllerState()
        now = dt_util.now()

        sunset = get_sunset(self.hass, now.date())
        if sunset is None:
            _LOGGER.warning("No sunset today at this location, monitoring skipped")
            self.state.halt_reason = HALT_REASON_NO_SUNSET
            self._publish()
            return

        open_at, close_at = compute_monitoring_window(sunset, self.controller_config.lead_time)
        self.state.window_open_at = open_at
        self.state.window_close_at = close_at

        in_window = self.state.is_monitoring_window(now)
        if not in_window and now >= open_at:
            _LOGGER.info(
                "Today's window closed at %s, waiting for next daily reset", close_at
            )
            self.state.halt_reason = HALT_REASON_WINDOW_PASSED
            self._publish()
            return

        self._unsub_window_close = async_track_point_in_time(
            self.hass, self._handle_window_close, close_at
        )
        _LOGGER.debug("Scheduled window close at %s", close_at)

        if in_window:
            _LOGGER.warning("Sunset - T is already past; starting monitoring immediately")
            await self._async_enter_monitoring(now)
        else:
            self._unsub_window_open = async_track_point_in_time(
                self.hass, self._handle_window_open, open_at
            )
            _LOGGER.debug("Scheduled window open at %s", open_at)

        self._publish()

    async def _async_enter_monitoring(self, now: datetime) -> None:
        self.state.phase = ControllerPhase.MONITORING
        _LOGGER.info(
            "▶ Monitoring from %s until sunset (%s)", now, self.state.window_close_at
        )
        await self._async_evaluate(now, "window_open")
        if self.state.phase == ControllerPhase.MONITORING:
            self._schedule_poll_tick(now)

    def _halt_for_override(self) -> None:
        """Stop acting for the rest of the day."""
        _LOGGER.warning("Stopping monitoring for today due to manual override")
        self.state.phase = ControllerPhase.IDLE
        self.state.halt_reason = HALT_REASON_MANUAL_OVERRIDE
        self._cancel_all_timers()

    # ------------------------------------------------------------------
    # Evaluation and actions
    # ------------------------------------------------------------------

    async def _async_evaluate(
        self,
        now: datetime,
        trigger: str,
        raw_power: float | None = None,
        mode: ThermostatMode | None = None,
    ) -> None:
        """Run one decision step. Lock must be held."""
        try:
            if raw_power is None:
                raw_power = self.power.read_power()
            secondary = self.power.read_secondary_load()
        except PowerReadError as err:
            _LOGGER.warning("Skipping evaluation (%s): %s", trigger, err)
            return

        if mode is None:
            mode = self.thermostat.read_mode()

        effective = calculate_effective_power(
            raw_power, secondary, self.controller_config.invert_power
        )
        self.state.last_effective_power = effective
        _LOGGER.debug(
            "Evaluate (%s): raw=%.0f W, secondary=%.0f W, effective=%.0f W",
            trigger,
            raw_power,
            secondary,
            effective,
        )

        decision = decide(effective, mode, self.controller_config, self.state.lowered)
        if decision.action == SetpointAction.NONE:
            _LOGGER.debug("Evaluate (%s): %s", trigger, decision.reason)
        else:
            _LOGGER.info("Evaluate (%s): %s", trigger, decision.reason)
            try:
                await self._async_apply_action(decision.action, now)
            except HomeAssistantError as err:
                _LOGGER.error("Setpoint %s failed: %s", decision.action, err)

        self._publish()

    async def _async_apply_action(self, action: SetpointAction, now: datetime) -> bool:
        """Apply an action through short-cycle protection.

        Returns:
            True if the setpoint was written
        """
        is_allowed, _ = self.guard.check(now, self.state.last_action_at)
        if not is_allowed:
            retry_at = self.guard.retry_at(now, self.state.last_action_at)
            _LOGGER.info("Short-cycle protection: %s deferred until %s", action, retry_at)
            self._schedule_retry(seconds_until(now, retry_at))
            return False

        if action == SetpointAction.LOWER:
            return await self._async_lower_setpoint(now)
        if action == SetpointAction.RESTORE:
            return await self._async_restore_setpoint(now)
        return False

    async def _async_lower_setpoint(self, now: datetime) -> bool:
        if self.state.lowered:
            _LOGGER.debug("Setpoint already lowered, nothing to do")
            return False

        unit = self.controller_config.unit_symbol
        try:
            current = self.thermostat.read_setpoint()
        except ThermostatReadError as err:
            _LOGGER.warning("Cannot lower setpoint: %s", err)
            return False

        new_setpoint = calculate_lowered_setpoint(
            current, self.controller_config.setpoint_delta, self.controller_config.granularity
        )
        try:
            await self.thermostat.async_write_setpoint(new_setpoint)
        except ThermostatWriteError as err:
            _LOGGER.error("Failed to lower setpoint: %s", err)
            return False

        self.state.baseline_setpoint = current
        self.state.applied_setpoint = new_setpoint
        self.state.lowered = True
        self._record_action(SetpointAction.LOWER, now)
        _LOGGER.info("⬇ Lowered cooling setpoint from %s%s to %s%s", current, unit, new_setpoint, unit)
        return True

    async def _async_restore_setpoint(self, now: datetime) -> bool:
        if not self.state.lowered or self.state.baseline_setpoint is None:
            _LOGGER.debug("Setpoint not lowered, nothing to restore")
            return False

        unit = self.controller_config.unit_symbol
        try:
            current = self.thermostat.read_setpoint()
        except ThermostatReadError as err:
            _LOGGER.warning("Cannot restore setpoint: %s", err)
            return False

        if not self.override_detector.is_own_write(current, self.state):
            _LOGGER.warning(
                "Restore skipped: detected manual override (%s%s)", current, unit
            )
            self._halt_for_override()
            return False

        baseline = self.state.baseline_setpoint
        try:
            await self.thermostat.async_write_setpoint(baseline)
        except ThermostatWriteError as err:
            _LOGGER.error("Failed to restore setpoint: %s", err)
            return False

        self.state.applied_setpoint = baseline
        self.state.lowered = False
        self._record_action(SetpointAction.RESTORE, now)
        _LOGGER.info("⬆ Restored cooling setpoint to %s%s", baseline, unit)
        return True

    async def _async_restore_without_guard(self, reason: str) -> None:
        """Put the baseline back if the live setpoint is still ours. Lock must be held.

        Used when the day ends early (unload, daily reset) so the building is
        never left at the lowered value. Skips short-cycle protection.
        """
        if not self.state.lowered or self.state.baseline_setpoint is None:
            return

        unit = self.controller_config.unit_symbol
        baseline = self.state.baseline_setpoint
        try:
            current = self.thermostat.read_setpoint()
            if not self.override_detector.is_own_write(current, self.state):
                _LOGGER.info(
                    "Setpoint changed to %s%s outside the controller, not restoring on %s",
                    current,
                    unit,
                    reason,
                )
                return
            await self.thermostat.async_write_setpoint(baseline)
        except (ThermostatReadError, ThermostatWriteError) as err:
            _LOGGER.warning("Could not restore setpoint on %s: %s", reason, err)
            return

        self.state.lowered = False
        self.state.applied_setpoint = baseline
        _LOGGER.info("Restored cooling setpoint to %s%s on %s", baseline, unit, reason)

    async def _async_settle_restore(self, now: datetime) -> None:
        """Restore at window close; retried until resolved or reset."""
        written = await self._async_apply_action(SetpointAction.RESTORE, now)
        if written or not self.state.lowered or self.state.phase != ControllerPhase.SETTLED:
            return
        if self._unsub_retry is None:
            # Read/write failed - keep trying on the poll cadence
            self._schedule_retry(int(self.controller_config.poll_interval.total_seconds()))

    def _record_action(self, action: SetpointAction, now: datetime) -> None:
        self.state.last_action_at = now
        self.state.last_action = action
        self.state.actions_today += 1

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule_poll_tick(self, now: datetime) -> None:
        self._cancel_poll_tick()
        if not self.state.is_monitoring_window(now):
            _LOGGER.debug("Outside the monitoring window, no more checks")
            return

        next_time = now + self.controller_config.poll_interval
        self._unsub_poll_tick = async_track_point_in_time(
            self.hass, self._handle_poll_tick, next_time
        )
        _LOGGER.debug("Next check at %s", next_time)

    def _schedule_retry(self, delay_seconds: int) -> None:
        """Schedule the single outstanding retry, replacing any previous one."""
        self._cancel_retry()
        self._unsub_retry = async_call_later(self.hass, delay_seconds, self._handle_retry)

    def _cancel_poll_tick(self) -> None:
        if self._unsub_poll_tick:
            self._unsub_poll_tick()
            self._unsub_poll_tick = None

    def _cancel_retry(self) -> None:
        if self._unsub_retry:
            self._unsub_retry()
            self._unsub_retry = None

    def _cancel_all_timers(self) -> None:
        self._cancel_poll_tick()
        self._cancel_retry()
        if self._unsub_window_open:
            self._unsub_window_open()
            self._unsub_window_open = None
        if self._unsub_window_close:
            self._unsub_window_close()
            self._unsub_window_close = None

    @property
    def has_pending_timers(self) -> bool:
        return any(
            (
                self._unsub_window_open,
                self._unsub_window_close,
                self._unsub_poll_tick,
                self._unsub_retry,
            )
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _build_status(self) -> dict[str, Any]:
        status = self.state.as_dict()
        status["threshold_high_w"] = self.controller_config.threshold_high_kw * WATTS_PER_KILOWATT
        status["threshold_low_w"] = self.controller_config.threshold_low_kw * WATTS_PER_KILOWATT
        status["unit"] = self.controller_config.unit_symbol
        return status

    def _publish(self) -> None:
        self.async_set_updated_data(self._build_status())
