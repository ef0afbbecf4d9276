"""
Static rate limit configuration per gated action.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Window name -> (duration seconds, alert key)
WINDOW_DEFINITIONS: dict[str, tuple[int, Optional[str]]] = {
    "perMinute": (60, None),
    "perHour": (60 * 60, None),
    "perDay": (24 * 60 * 60, "daily"),
    "perMonth": (30 * 24 * 60 * 60, "monthly"),
}


class RateLimitWindow(BaseModel):
    """One counting window: at most `limit` events in the last `seconds`."""
    model_config = ConfigDict(frozen=True)

    name: str
    seconds: int = Field(gt=0)
    limit: int = Field(ge=0)
    alert_key: Optional[str] = None

    @property
    def label(self) -> str:
        """Human label used in alert bodies ("perDay" -> "day")."""
        return self.name.replace("per", "", 1).lower()


class RateLimitConfig(BaseModel):
    """Limits for one action type.

    Windows are kept sorted by duration so the smallest window is always
    evaluated first, whatever order they were declared in.
    """
    model_config = ConfigDict(frozen=True)

    action_type: str
    windows: tuple[RateLimitWindow, ...]
    alert_on: frozenset[str] = frozenset()

    @field_validator("windows")
    @classmethod
    def _sort_windows(cls, windows: tuple[RateLimitWindow, ...]) -> tuple[RateLimitWindow, ...]:
        return tuple(sorted(windows, key=lambda w: w.seconds))

    def should_alert(self, window: RateLimitWindow) -> bool:
        # alert_on accepts either the alert key ("daily") or the window name ("perDay")
        if window.name in self.alert_on:
            return True
        return window.alert_key is not None and window.alert_key in self.alert_on

    @classmethod
    def from_limits(
        cls,
        action_type: str,
        per_minute: Optional[int] = None,
        per_hour: Optional[int] = None,
        per_day: Optional[int] = None,
        per_month: Optional[int] = None,
        alert_on: tuple[str, ...] = (),
    ) -> "RateLimitConfig":
        """Build a config from the standard windows; None disables a window."""
        limits = {
            "perMinute": per_minute,
            "perHour": per_hour,
            "perDay": per_day,
            "perMonth": per_month,
        }
        windows = []
        for name, limit in limits.items():
            if limit is None:
                continue
            seconds, alert_key = WINDOW_DEFINITIONS[name]
            windows.append(RateLimitWindow(name=name, seconds=seconds, limit=limit, alert_key=alert_key))
        return cls(action_type=action_type, windows=tuple(windows), alert_on=frozenset(alert_on))


RECEIPT_SCAN_ACTION = "receipt_scan"

RECEIPT_SCAN_LIMITS = RateLimitConfig.from_limits(
    RECEIPT_SCAN_ACTION,
    per_minute=10,
    per_hour=60,
    per_day=100,
    per_month=200,
    alert_on=("daily", "monthly"),
)
