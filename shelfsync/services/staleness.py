"""
Freshness tracking for externally sourced events.

Events are discovered by backend jobs, so the client keeps a last-refreshed
timestamp per scope (an author id, or ``GLOBAL_SCOPE`` for the followed
authors as a whole) and only asks for a refresh once the window has passed.
"""

from dataclasses import dataclass
from datetime import datetime

from shelfsync.core.clock import Clock, parse_timestamp
from shelfsync.core.errors import RATE_LIMIT_MESSAGE, error_message, is_rate_limited

GLOBAL_SCOPE = "global"

Scope = int | str

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_elapsed(elapsed_ms: float) -> str:
    """Human-readable age, floored to the largest whole unit."""
    minutes = int(elapsed_ms // MINUTE_MS)
    hours = int(elapsed_ms // HOUR_MS)
    days = int(elapsed_ms // DAY_MS)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(days, "day")


def refresh_message(events_count: int) -> str:
    if events_count <= 0:
        return "No new events found"
    return f"Found {events_count} new event{'' if events_count == 1 else 's'}!"


def refresh_error_message(exc: BaseException) -> str:
    if is_rate_limited(exc):
        return RATE_LIMIT_MESSAGE
    return error_message(exc, "Failed to refresh events")


@dataclass
class RefreshOutcome:
    success: bool
    message: str
    events_count: int = 0
    last_refreshed_at: datetime | None = None


class StalenessTracker:
    """Last-refreshed timestamps per scope."""

    def __init__(self, clock: Clock, window_seconds: float = 300):
        self.clock = clock
        self.window_seconds = window_seconds
        self._last_refreshed: dict[Scope, datetime] = {}

    @staticmethod
    def scope_for(author_id: int | None) -> Scope:
        return GLOBAL_SCOPE if author_id is None else author_id

    def mark_refreshed(self, scope: Scope, at: datetime | str | None = None) -> datetime:
        timestamp = parse_timestamp(at) if at is not None else self.clock.now()
        self._last_refreshed[scope] = timestamp
        return timestamp

    def last_refreshed(self, scope: Scope = GLOBAL_SCOPE) -> datetime | None:
        return self._last_refreshed.get(scope)

    def elapsed_ms(self, scope: Scope = GLOBAL_SCOPE) -> float | None:
        last = self._last_refreshed.get(scope)
        if last is None:
            return None
        return (self.clock.now() - last).total_seconds() * 1000

    def should_refresh(self, scope: Scope = GLOBAL_SCOPE) -> bool:
        """True if never refreshed, or the window has strictly elapsed."""
        elapsed = self.elapsed_ms(scope)
        if elapsed is None:
            return True
        return elapsed > self.window_seconds * 1000

    def time_since_refresh(self, scope: Scope = GLOBAL_SCOPE) -> str | None:
        elapsed = self.elapsed_ms(scope)
        if elapsed is None:
            return None
        return format_elapsed(elapsed)

    def forget(self, scope: Scope) -> None:
        self._last_refreshed.pop(scope, None)

    def reset(self) -> None:
        self._last_refreshed.clear()
