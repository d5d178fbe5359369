"""Manual override detection.

Every setpoint change on the thermostat is reported back to us, including
the ones we made ourselves. A change is ours only if it matches the value
we last wrote (while lowered) or the baseline we restored to (after a
restore). Anything else came from a person or another automation.
"""

import logging

from ..const import SETPOINT_COMPARE_DECIMALS
from .state import ControllerState

_LOGGER = logging.getLogger(__name__)


class OverrideDetector:
    """Tell our own setpoint writes apart from out-of-band changes.

    Our own writes are already snapped to the thermostat step, so incoming
    values are compared as reported. A change smaller than one step still
    counts as an override.
    """

    def _matches(self, value: float, expected: float | None) -> bool:
        if expected is None:
            return False
        return round(value, SETPOINT_COMPARE_DECIMALS) == round(
            expected, SETPOINT_COMPARE_DECIMALS
        )

    def is_own_write(self, value: float, state: ControllerState) -> bool:
        """Return True if value is the echo of our last lower or restore."""
        if state.lowered:
            return self._matches(value, state.applied_setpoint)
        return state.baseline_setpoint is not None and self._matches(
            value, state.baseline_setpoint
        )

    def is_override(self, value: float, state: ControllerState) -> bool:
        """Return True if value was set by someone other than the controller."""
        own = self.is_own_write(value, state)
        if own:
            _LOGGER.debug("Programmatic setpoint change to %s, ignoring", value)
        return not own
