"""
Read-only statistics derived from the local store.

Nothing here materializes defaults or touches the dirty flags.
"""

from datetime import date as date_type
from datetime import timedelta
from typing import Optional

from .catalog import COUNTER_ORDER
from .models import CounterRecord, validate_date
from .store import LocalStore

STREAK_LIMIT_DAYS = 365


def day_complete(counters: list[CounterRecord]) -> bool:
    """True if the day has targeted counters and every one met its target."""
    targeted = [c for c in counters if c.target is not None]
    return bool(targeted) and all(c.is_complete for c in targeted)


def calculate_streak(store: LocalStore, today: Optional[str] = None) -> int:
    """Consecutive complete days ending today.

    Today only counts once it is complete; until then the streak is
    measured up to yesterday.
    """
    current = date_type.fromisoformat(validate_date(today) if today else date_type.today().isoformat())
    if not day_complete(store.peek_counters(current.isoformat())):
        current -= timedelta(days=1)

    streak = 0
    while streak < STREAK_LIMIT_DAYS:
        if not day_complete(store.peek_counters(current.isoformat())):
            break
        streak += 1
        current -= timedelta(days=1)
    return streak


def weekly_stats(store: LocalStore, end: Optional[str] = None) -> list[dict]:
    """Counter totals for the seven days ending at ``end``, oldest first."""
    end_day = date_type.fromisoformat(validate_date(end) if end else date_type.today().isoformat())
    start_day = end_day - timedelta(days=6)

    by_date: dict[str, dict[str, int]] = {}
    for record in store.counters_between(start_day.isoformat(), end_day.isoformat()):
        by_date.setdefault(record.date, {})[record.name] = record.count

    stats = []
    for offset in range(7):
        day = (start_day + timedelta(days=offset)).isoformat()
        stored = by_date.get(day, {})
        stats.append({
            "date": day,
            "counts": {name: stored.get(name, 0) for name in COUNTER_ORDER},
        })
    return stats
