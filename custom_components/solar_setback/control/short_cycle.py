"""Short-cycle protection for setpoint actions.

Bounds how often the controller may lower or restore the setpoint,
regardless of how noisy the power signal is. A passing cloud can push
export across both thresholds within a minute; without this guard the
cooling load would follow it.
"""

import logging
import math
from datetime import datetime, timedelta

_LOGGER = logging.getLogger(__name__)


class ShortCycleGuard:
    """Enforce a minimum dwell time between consecutive actions."""

    def __init__(self, minimum_dwell: timedelta):
        """Initialize guard.

        Args:
            minimum_dwell: Minimum time between two accepted actions
        """
        self.minimum_dwell = minimum_dwell

    def check(self, now: datetime, last_action_at: datetime | None) -> tuple[bool, int]:
        """Check whether an action may run now.

        Args:
            now: Current time
            last_action_at: Time of the last accepted action, None if none today

        Returns:
            Tuple of (is_allowed, remaining_seconds)
            - is_allowed: True if the action may execute
            - remaining_seconds: Whole seconds until allowed, rounded up (0 if allowed)
        """
        if last_action_at is None:
            return True, 0

        elapsed = now - last_action_at
        if elapsed >= self.minimum_dwell:
            return True, 0

        remaining = self.minimum_dwell - elapsed
        remaining_seconds = max(1, math.ceil(remaining.total_seconds()))
        return False, remaining_seconds

    def retry_at(self, now: datetime, last_action_at: datetime | None) -> datetime:
        """Return when a denied action should be retried."""
        _, remaining_seconds = self.check(now, last_action_at)
        return now + timedelta(seconds=remaining_seconds)
