"""
Data models for the sync engine.

Records are keyed by (name, date) per kind. ``dirty`` is true exactly when
the local value may differ from the last value the server accepted.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date as date_type
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_date(value: str) -> str:
    """Return ``value`` if it is a real YYYY-MM-DD calendar day."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    try:
        date_type.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return value


def today() -> str:
    """Device-local calendar day."""
    return date_type.today().isoformat()


# =============================================================================
# Enums
# =============================================================================

class RecordKind(Enum):
    """The two entity kinds the engine synchronizes."""
    COUNTER = "mantra"
    CHECKLIST = "activity"


class MergeAction(Enum):
    """Outcome of comparing one local record with its remote counterpart."""
    PULL = "pull"  # take the remote value, clear dirty
    PUSH = "push"  # keep local, push it, dirty stays until confirmed
    MARK_SYNCED = "mark_synced"  # values agree, clear dirty


@dataclass(frozen=True)
class RecordKey:
    """Identity of one record; also the retry queue dedup key."""
    kind: RecordKind
    name: str
    date: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}@{self.date}"


# =============================================================================
# Local records
# =============================================================================

@dataclass
class CounterRecord:
    """One recitation counter for one calendar day."""
    name: str
    date: str
    count: int = 0
    target: Optional[int] = None
    dirty: bool = False
    modified_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"Counter '{self.name}' count must be non-negative, got {self.count}")
        if self.target is not None and self.target <= 0:
            raise ValueError(f"Counter '{self.name}' target must be positive, got {self.target}")

    @property
    def key(self) -> RecordKey:
        return RecordKey(RecordKind.COUNTER, self.name, self.date)

    @property
    def progress(self) -> Optional[float]:
        """Fraction of target reached, capped at 1.0; None when untargeted."""
        if self.target is None:
            return None
        return min(self.count / self.target, 1.0)

    @property
    def is_complete(self) -> Optional[bool]:
        """None for untargeted counters: completion does not apply."""
        if self.target is None:
            return None
        return self.count >= self.target

    def copy(self, **changes) -> "CounterRecord":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "date": self.date,
            "count": self.count,
            "target": self.target,
            "dirty": self.dirty,
            "modified_at": self.modified_at.isoformat(),
        }


@dataclass
class ChecklistRecord:
    """One boolean ritual activity for one calendar day."""
    name: str
    date: str
    category: str = ""
    display_label: str = ""
    completed: bool = False
    completed_at: Optional[datetime] = None
    dirty: bool = False
    modified_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> RecordKey:
        return RecordKey(RecordKind.CHECKLIST, self.name, self.date)

    def copy(self, **changes) -> "ChecklistRecord":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "date": self.date,
            "category": self.category,
            "display_label": self.display_label,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "dirty": self.dirty,
            "modified_at": self.modified_at.isoformat(),
        }


Record = Union[CounterRecord, ChecklistRecord]


@dataclass
class DayView:
    """Everything the engine knows about one date."""
    date: str
    counters: list[CounterRecord] = field(default_factory=list)
    checklist: list[ChecklistRecord] = field(default_factory=list)

    def counter(self, name: str) -> Optional[CounterRecord]:
        return next((c for c in self.counters if c.name == name), None)

    def item(self, name: str) -> Optional[ChecklistRecord]:
        return next((a for a in self.checklist if a.name == name), None)

    def by_category(self, category: str) -> list[ChecklistRecord]:
        return [a for a in self.checklist if a.category == category]


# =============================================================================
# Remote snapshots
# =============================================================================

@dataclass(frozen=True)
class RemoteCounter:
    """Counter state as reported by the server."""
    name: str
    count: int
    target: Optional[int] = None

    @classmethod
    def from_dict(cls, d: dict) -> "RemoteCounter":
        name = d["name"]
        count = d["count"]
        target = d.get("target")
        if not isinstance(name, str) or not isinstance(count, int) or isinstance(count, bool):
            raise ValueError(f"Malformed counter entry: {d!r}")
        if count < 0:
            raise ValueError(f"Negative count in counter entry: {d!r}")
        if target is not None and (not isinstance(target, int) or target <= 0):
            raise ValueError(f"Bad target in counter entry: {d!r}")
        return cls(name=name, count=count, target=target)


@dataclass(frozen=True)
class RemoteActivity:
    """Checklist state as reported by the server."""
    name: str
    completed: bool
    display_name: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "RemoteActivity":
        name = d["name"]
        completed = d["completed"]
        if not isinstance(name, str) or not isinstance(completed, bool):
            raise ValueError(f"Malformed activity entry: {d!r}")
        return cls(
            name=name,
            completed=completed,
            display_name=d.get("displayName"),
            category=d.get("category"),
        )


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class CompletionEvent:
    """A targeted counter crossed from below target to at-or-above target."""
    name: str
    date: str
    count: int
    target: int
    timestamp: datetime = field(default_factory=utcnow)
