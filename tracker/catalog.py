"""
Default catalog of counters and checklist activities.

Every calendar day starts from this catalog. Both the local store and the
reference server materialize it lazily on first access to a date.
"""

from typing import Optional


# (name, target); a target of None marks an untargeted trend counter
DEFAULT_COUNTERS: list[tuple[str, Optional[int]]] = [
    ("first", 108),
    ("third", 1000),
    ("dandavat", None),
]

# (name, display label, category)
DEFAULT_ACTIVITIES: list[tuple[str, str, str]] = [
    ("morning_aarti", "Morning Aarti", "aarti"),
    ("afternoon_aarti", "Afternoon Aarti", "aarti"),
    ("evening_aarti", "Evening Aarti", "aarti"),
    ("before_food_aarti", "Before Food", "satsang"),
    ("after_food_aarti", "After Food", "satsang"),
    ("mangalacharan", "Mangalacharan", "satsang"),
]

COUNTER_ORDER = [name for name, _ in DEFAULT_COUNTERS]
ACTIVITY_ORDER = [name for name, _, _ in DEFAULT_ACTIVITIES]


def counter_sort_key(name: str) -> tuple[int, str]:
    """Catalog order first, unknown names alphabetically after."""
    if name in COUNTER_ORDER:
        return (COUNTER_ORDER.index(name), name)
    return (len(COUNTER_ORDER), name)


def activity_sort_key(name: str) -> tuple[int, str]:
    if name in ACTIVITY_ORDER:
        return (ACTIVITY_ORDER.index(name), name)
    return (len(ACTIVITY_ORDER), name)


def default_label(name: str) -> str:
    """Human label for an activity name the catalog does not know."""
    return name.replace("_", " ").title()
