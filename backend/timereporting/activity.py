"""Advisory activity tracking used to propose the next time entry.

Nothing here writes entries. A proposal is a plain :class:`LogTimeRequest`
that the client has to send back through the normal create operation, where
it is validated like any other payload.
"""

from __future__ import annotations

import datetime as dt
from threading import RLock
from typing import Callable, Optional

from .config import Settings
from .schemas import LogTimeRequest

MIN_SUGGESTED_HOURS = 0.25
MAX_SUGGESTED_HOURS = 8.0


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ActivityContext:
    """Recent project/task and session timing for one client."""

    def __init__(self, base_settings: Settings, clock: Callable[[], dt.datetime] = _utcnow):
        self._lock = RLock()
        self._clock = clock
        self.idle_threshold_minutes: float = base_settings.suggestion_idle_minutes
        now = clock()
        self.last_project_code: Optional[str] = None
        self.last_task: Optional[str] = None
        self.last_entry_id: Optional[str] = None
        self.last_entry_created_at: Optional[dt.datetime] = None
        self.last_activity_at: dt.datetime = now
        self.session_started_at: Optional[dt.datetime] = now
        self.activity_count: int = 0
        self.suggestion_shown: bool = False

    def record_entry(self, project_code: str, task: str, entry_id: str) -> None:
        with self._lock:
            now = self._clock()
            self.last_project_code = project_code
            self.last_task = task
            self.last_entry_id = entry_id
            self.last_entry_created_at = now
            self.last_activity_at = now
            self.activity_count += 1
            # Logging time closes the current work session
            self.session_started_at = now
            self.suggestion_shown = False

    def record_activity(self) -> None:
        with self._lock:
            idle = self.idle_minutes()
            now = self._clock()
            if self.session_started_at is None or idle > self.idle_threshold_minutes:
                self.session_started_at = now
                self.suggestion_shown = False
            self.last_activity_at = now
            self.activity_count += 1

    def idle_minutes(self) -> float:
        with self._lock:
            return (self._clock() - self.last_activity_at).total_seconds() / 60

    def session_minutes(self) -> float:
        with self._lock:
            if self.session_started_at is None:
                return 0.0
            return (self._clock() - self.session_started_at).total_seconds() / 60

    def minutes_since_last_entry(self) -> Optional[float]:
        with self._lock:
            if self.last_entry_created_at is None:
                return None
            return (self._clock() - self.last_entry_created_at).total_seconds() / 60

    def suggested_hours(self) -> float:
        """Session length in hours, rounded to quarter hours and clamped to 0.25-8."""
        hours = self.session_minutes() / 60
        rounded = round(hours * 4) / 4
        return max(MIN_SUGGESTED_HOURS, min(MAX_SUGGESTED_HOURS, rounded))

    def has_suggestion_context(self) -> bool:
        with self._lock:
            return self.last_project_code is not None and self.last_task is not None

    def propose(self, today: Optional[dt.date] = None) -> Optional[LogTimeRequest]:
        with self._lock:
            if not self.has_suggestion_context() or self.suggestion_shown:
                return None
            day = today or self._clock().date()
            self.suggestion_shown = True
            return LogTimeRequest(
                project_code=self.last_project_code,
                task=self.last_task,
                standard_hours=self.suggested_hours(),
                start_date=day,
                completion_date=day,
            )
