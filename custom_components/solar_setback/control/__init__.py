"""Control logic for Solar Setback.

Pure Python decision, short-cycle and override logic independent of the
Home Assistant runtime. The coordinator drives it.
"""

from .config import ConfigurationInvalid, ControllerConfig
from .decision import (
    PowerDecision,
    calculate_effective_power,
    calculate_lowered_setpoint,
    decide,
    is_applicable_mode,
    snap_to_granularity,
)
from .override import OverrideDetector
from .short_cycle import ShortCycleGuard
from .state import ControllerState

__all__ = [
    "ConfigurationInvalid",
    "ControllerConfig",
    "ControllerState",
    "OverrideDetector",
    "PowerDecision",
    "ShortCycleGuard",
    "calculate_effective_power",
    "calculate_lowered_setpoint",
    "decide",
    "is_applicable_mode",
    "snap_to_granularity",
]
