import math
from datetime import datetime, timezone
from typing import Iterable, Optional

from dashboard.cache.decorators import async_cached
from dashboard.cache.keys import worked_hours_key
from dashboard.models import TimeEntry, WorkedEntry, WorkedHours, as_utc
from dashboard.storage import TaskStorage

WORKED_HOURS_TTL = 60


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def entry_minutes(entry: TimeEntry, now: datetime) -> int:
    """Stored duration wins; otherwise clock-out (or now, if still clocked in) minus clock-in."""
    if entry.duration:
        return entry.duration
    end = entry.clock_out or now
    elapsed = (as_utc(end) - as_utc(entry.clock_in)).total_seconds()
    return _round_half_up(elapsed / 60)


def summarize_time_entries(
    task_id: int, entries: Iterable[TimeEntry], now: Optional[datetime] = None
) -> WorkedHours:
    now = now or datetime.now(timezone.utc)
    worked = [
        WorkedEntry(
            id=entry.id,
            user_id=entry.user_id,
            clock_in=entry.clock_in,
            clock_out=entry.clock_out,
            duration=entry_minutes(entry, now),
            notes=entry.notes,
        )
        for entry in entries
    ]
    total_minutes = sum(item.duration for item in worked)
    return WorkedHours(
        task_id=task_id,
        total_hours=_round_half_up(total_minutes / 60 * 10) / 10,
        total_minutes=total_minutes,
        entry_count=len(worked),
        entries=worked,
    )


class WorkedHoursService:
    @staticmethod
    @async_cached(lambda task_id, *_, **__: worked_hours_key(task_id), ttl=WORKED_HOURS_TTL)
    async def get_worked_hours(task_id: int, storage: TaskStorage):
        entries = await storage.get_time_entries(task_id=task_id)
        return summarize_time_entries(task_id, entries)
