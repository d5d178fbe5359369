"""Time-related utility functions for Solar Setback.

Provides the monitoring window calculation around sunset.
"""

import math
from datetime import date, datetime, timedelta

from homeassistant.const import SUN_EVENT_SUNSET
from homeassistant.core import HomeAssistant
from homeassistant.helpers.sun import get_astral_event_date


def get_sunset(hass: HomeAssistant, day: date) -> datetime | None:
    """Get sunset for a day at the configured Home Assistant location.

    Args:
        hass: Home Assistant instance
        day: Local date

    Returns:
        Sunset as an aware datetime, or None when the sun does not set
        (polar summer/winter)
    """
    return get_astral_event_date(hass, SUN_EVENT_SUNSET, day)


def compute_monitoring_window(sunset: datetime, lead_time: timedelta) -> tuple[datetime, datetime]:
    """Compute the monitoring window ending at sunset.

    Args:
        sunset: Window close
        lead_time: How long before sunset monitoring starts

    Returns:
        Tuple of (window_open_at, window_close_at)
    """
    return sunset - lead_time, sunset


def seconds_until(now: datetime, target: datetime) -> int:
    """Whole seconds from now until target, rounded up, never negative."""
    return max(0, math.ceil((target - now).total_seconds()))
