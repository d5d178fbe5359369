"""Adapters for external integration interfaces."""

from .power_adapter import PowerAdapter, PowerReadError
from .thermostat_adapter import ThermostatAdapter, ThermostatReadError, ThermostatWriteError

__all__ = [
    "PowerAdapter",
    "PowerReadError",
    "ThermostatAdapter",
    "ThermostatReadError",
    "ThermostatWriteError",
]
