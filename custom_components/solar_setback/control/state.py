"""Per-day controller state."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..const import ControllerPhase, SetpointAction


@dataclass
class ControllerState:
    """Mutable state for one monitoring day.

    Owned by the coordinator and only mutated while its lock is held.
    A fresh instance is created at activation and at every daily reset.
    """

    phase: ControllerPhase = ControllerPhase.IDLE
    lowered: bool = False
    baseline_setpoint: float | None = None  # Setpoint before the last lowering
    applied_setpoint: float | None = None  # Exact value we last wrote
    window_open_at: datetime | None = None
    window_close_at: datetime | None = None
    last_action_at: datetime | None = None

    # Diagnostics
    last_effective_power: float | None = None  # W
    last_action: SetpointAction = SetpointAction.NONE
    halt_reason: str | None = None
    actions_today: int = field(default=0)

    def is_monitoring_window(self, now: datetime) -> bool:
        """Return True if now falls inside [window_open_at, window_close_at)."""
        if self.window_open_at is None or self.window_close_at is None:
            return False
        return self.window_open_at <= now < self.window_close_at

    def as_dict(self) -> dict[str, Any]:
        """Snapshot for entities and diagnostics."""
        return {
            "phase": self.phase,
            "lowered": self.lowered,
            "baseline_setpoint": self.baseline_setpoint,
            "applied_setpoint": self.applied_setpoint,
            "window_open_at": self.window_open_at,
            "window_close_at": self.window_close_at,
            "last_action_at": self.last_action_at,
            "last_effective_power": self.last_effective_power,
            "last_action": self.last_action,
            "halt_reason": self.halt_reason,
            "actions_today": self.actions_today,
        }
