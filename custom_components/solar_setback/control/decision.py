"""Power-threshold decision engine.

Maps one power observation plus the current controller state to a setpoint
action. Stateless per call: everything it needs is passed in.

Hysteresis: the high threshold must sit above the low threshold, so a
reading that oscillates between the two can lower the setpoint once but
never flip it back and forth every cycle. This is independent of the
short-cycle guard, which bounds the action rate in time.
"""

import logging
import math
from dataclasses import dataclass

from ..const import (
    SETPOINT_COMPARE_DECIMALS,
    WATTS_PER_KILOWATT,
    SetpointAction,
    ThermostatMode,
)
from .config import ControllerConfig

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PowerDecision:
    """Result of a single decision step."""

    action: SetpointAction
    effective_power: float  # W
    threshold_high: float  # W
    threshold_low: float  # W
    reason: str


def calculate_effective_power(
    raw_power: float,
    secondary_load: float = 0.0,
    invert: bool = False,
) -> float:
    """Sign-correct the meter reading and add back the secondary load.

    Net meters often report export as negative, hence the optional inversion.
    Adding the secondary consumer's load estimates the export as if that
    consumer were switched off.

    Args:
        raw_power: Power meter reading in W
        secondary_load: Secondary consumer load in W (0 when not configured)
        invert: Flip the sign of the raw reading

    Returns:
        Effective power in W
    """
    signed = -raw_power if invert else raw_power
    return signed + secondary_load


def is_applicable_mode(mode: ThermostatMode, apply_in_secondary_mode: bool) -> bool:
    """Return True if the controller may lower the setpoint in this mode."""
    if mode == ThermostatMode.PRIMARY:
        return True
    if mode == ThermostatMode.SECONDARY:
        return apply_in_secondary_mode
    return False


def decide(
    effective_power: float,
    mode: ThermostatMode,
    config: ControllerConfig,
    lowered: bool,
) -> PowerDecision:
    """Decide whether to lower, restore or leave the setpoint.

    Args:
        effective_power: Output of calculate_effective_power (W)
        mode: Current thermostat mode
        config: Controller configuration (thresholds in kW)
        lowered: Whether the setpoint is currently offset by us

    Returns:
        PowerDecision with the requested action and reasoning
    """
    high_w = config.threshold_high_kw * WATTS_PER_KILOWATT
    low_w = config.threshold_low_kw * WATTS_PER_KILOWATT

    if not lowered and effective_power > high_w:
        if is_applicable_mode(mode, config.apply_in_secondary_mode):
            return PowerDecision(
                action=SetpointAction.LOWER,
                effective_power=effective_power,
                threshold_high=high_w,
                threshold_low=low_w,
                reason=f"export {effective_power:.0f} W > {high_w:.0f} W in {mode} mode",
            )
        return PowerDecision(
            action=SetpointAction.NONE,
            effective_power=effective_power,
            threshold_high=high_w,
            threshold_low=low_w,
            reason=(
                f"export {effective_power:.0f} W > {high_w:.0f} W but mode={mode}, "
                f"apply_in_auto={config.apply_in_secondary_mode}"
            ),
        )

    if lowered and effective_power < low_w:
        return PowerDecision(
            action=SetpointAction.RESTORE,
            effective_power=effective_power,
            threshold_high=high_w,
            threshold_low=low_w,
            reason=f"export {effective_power:.0f} W < {low_w:.0f} W",
        )

    return PowerDecision(
        action=SetpointAction.NONE,
        effective_power=effective_power,
        threshold_high=high_w,
        threshold_low=low_w,
        reason=f"no action, lowered={lowered}, mode={mode}",
    )


def snap_to_granularity(value: float, granularity: float) -> float:
    """Round a setpoint to the thermostat's step (0.5 for °C, 1.0 for °F).

    Halfway values round up (24.25 -> 24.5), not to the nearest even step.
    The result is also rounded to a few decimals so values produced here
    compare equal to values read back from the thermostat.
    """
    snapped = math.floor(value / granularity + 0.5) * granularity
    return round(snapped, SETPOINT_COMPARE_DECIMALS)


def calculate_lowered_setpoint(baseline: float, delta: float, granularity: float) -> float:
    """Return baseline - delta snapped to the configured granularity."""
    return snap_to_granularity(baseline - delta, granularity)
