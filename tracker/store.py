"""
Local Store - durable per-device record table on SQLite.

Holds the client's best-known state for every (name, date) per kind, plus the
dirty flag and local modification time. No network access happens here.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .catalog import (
    DEFAULT_ACTIVITIES,
    DEFAULT_COUNTERS,
    activity_sort_key,
    counter_sort_key,
)
from .exceptions import LocalStoreError
from .models import (
    ChecklistRecord,
    CounterRecord,
    DayView,
    Record,
    RecordKey,
    RecordKind,
    utcnow,
    validate_date,
)

logger = logging.getLogger(__name__)


class LocalStore:
    """SQLite-backed record store keyed by (name, date) per kind."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS counters (
        name TEXT NOT NULL,
        date TEXT NOT NULL,
        count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
        target INTEGER CHECK (target IS NULL OR target > 0),
        dirty INTEGER NOT NULL DEFAULT 0,
        modified_at TEXT NOT NULL,
        PRIMARY KEY (name, date)
    );

    CREATE TABLE IF NOT EXISTS checklist (
        name TEXT NOT NULL,
        date TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT '',
        display_label TEXT NOT NULL DEFAULT '',
        completed INTEGER NOT NULL DEFAULT 0,
        completed_at TEXT,
        dirty INTEGER NOT NULL DEFAULT 0,
        modified_at TEXT NOT NULL,
        PRIMARY KEY (name, date)
    );

    CREATE INDEX IF NOT EXISTS idx_counters_date ON counters(date);
    CREATE INDEX IF NOT EXISTS idx_checklist_date ON checklist(date);
    CREATE INDEX IF NOT EXISTS idx_counters_dirty ON counters(dirty) WHERE dirty = 1;
    CREATE INDEX IF NOT EXISTS idx_checklist_dirty ON checklist(dirty) WHERE dirty = 1;
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(self.SCHEMA)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, and surface failures as LocalStoreError."""
        conn = None
        for attempt in range(5):
            try:
                conn = sqlite3.connect(str(self.db_path), timeout=30.0)
                conn.row_factory = sqlite3.Row
                break
            except sqlite3.OperationalError as e:
                if "database is locked" in str(e) and attempt < 4:
                    time.sleep(0.1 * (2 ** attempt))
                else:
                    logger.error(f"Cannot open local store {self.db_path}: {e}")
                    raise LocalStoreError(f"Cannot open local store: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Local store operation failed: {e}")
            raise LocalStoreError(str(e)) from e
        finally:
            conn.close()

    # === Row mapping ===

    @staticmethod
    def _counter_from_row(row: sqlite3.Row) -> CounterRecord:
        return CounterRecord(
            name=row["name"],
            date=row["date"],
            count=row["count"],
            target=row["target"],
            dirty=bool(row["dirty"]),
            modified_at=datetime.fromisoformat(row["modified_at"]),
        )

    @staticmethod
    def _checklist_from_row(row: sqlite3.Row) -> ChecklistRecord:
        return ChecklistRecord(
            name=row["name"],
            date=row["date"],
            category=row["category"],
            display_label=row["display_label"],
            completed=bool(row["completed"]),
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            dirty=bool(row["dirty"]),
            modified_at=datetime.fromisoformat(row["modified_at"]),
        )

    # === Day materialization ===

    def ensure_defaults(self, date: str) -> bool:
        """Materialize the default catalog for ``date`` if it has no records.

        Each kind is checked independently. Returns True if anything was created.
        """
        validate_date(date)
        created = False
        now = utcnow().isoformat()
        with self._get_connection() as conn:
            has_counters = conn.execute(
                "SELECT 1 FROM counters WHERE date = ? LIMIT 1", (date,)
            ).fetchone()
            if not has_counters:
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO counters (name, date, count, target, dirty, modified_at)
                    VALUES (?, ?, 0, ?, 0, ?)
                    """,
                    [(name, date, target, now) for name, target in DEFAULT_COUNTERS],
                )
                created = True

            has_checklist = conn.execute(
                "SELECT 1 FROM checklist WHERE date = ? LIMIT 1", (date,)
            ).fetchone()
            if not has_checklist:
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO checklist
                    (name, date, category, display_label, completed, completed_at, dirty, modified_at)
                    VALUES (?, ?, ?, ?, 0, NULL, 0, ?)
                    """,
                    [(name, date, category, label, now) for name, label, category in DEFAULT_ACTIVITIES],
                )
                created = True

        if created:
            logger.debug(f"Materialized default catalog for {date}")
        return created

    # === Reads ===

    def get(self, date: str) -> DayView:
        """All records for ``date``, materializing defaults first if none exist."""
        self.ensure_defaults(date)
        return DayView(
            date=date,
            counters=self.peek_counters(date),
            checklist=self.peek_checklist(date),
        )

    def get_counters(self, date: str) -> list[CounterRecord]:
        self.ensure_defaults(date)
        return self.peek_counters(date)

    def get_checklist(self, date: str) -> list[ChecklistRecord]:
        self.ensure_defaults(date)
        return self.peek_checklist(date)

    def peek_counters(self, date: str) -> list[CounterRecord]:
        """Counters stored for ``date`` without materializing defaults."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM counters WHERE date = ?", (date,)).fetchall()
        records = [self._counter_from_row(r) for r in rows]
        return sorted(records, key=lambda r: counter_sort_key(r.name))

    def peek_checklist(self, date: str) -> list[ChecklistRecord]:
        """Checklist items stored for ``date`` without materializing defaults."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM checklist WHERE date = ?", (date,)).fetchall()
        records = [self._checklist_from_row(r) for r in rows]
        return sorted(records, key=lambda r: activity_sort_key(r.name))

    def get_counter(self, name: str, date: str) -> Optional[CounterRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM counters WHERE name = ? AND date = ?", (name, date)
            ).fetchone()
        return self._counter_from_row(row) if row else None

    def get_checklist_item(self, name: str, date: str) -> Optional[ChecklistRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM checklist WHERE name = ? AND date = ?", (name, date)
            ).fetchone()
        return self._checklist_from_row(row) if row else None

    def get_record(self, key: RecordKey) -> Optional[Record]:
        if key.kind is RecordKind.COUNTER:
            return self.get_counter(key.name, key.date)
        return self.get_checklist_item(key.name, key.date)

    def counters_between(self, start: str, end: str) -> list[CounterRecord]:
        """Stored counters with start <= date <= end, ordered by date."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM counters WHERE date >= ? AND date <= ? ORDER BY date",
                (start, end),
            ).fetchall()
        return [self._counter_from_row(r) for r in rows]

    # === Writes ===

    def put(self, records: Iterable[Record]) -> None:
        """Idempotent upsert by (name, date)."""
        counters = []
        items = []
        for record in records:
            validate_date(record.date)
            if isinstance(record, CounterRecord):
                counters.append((
                    record.name,
                    record.date,
                    record.count,
                    record.target,
                    int(record.dirty),
                    record.modified_at.isoformat(),
                ))
            else:
                items.append((
                    record.name,
                    record.date,
                    record.category,
                    record.display_label,
                    int(record.completed),
                    record.completed_at.isoformat() if record.completed_at else None,
                    int(record.dirty),
                    record.modified_at.isoformat(),
                ))

        if not counters and not items:
            return

        with self._get_connection() as conn:
            if counters:
                conn.executemany(
                    """
                    INSERT INTO counters (name, date, count, target, dirty, modified_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(name, date) DO UPDATE SET
                        count = excluded.count,
                        target = excluded.target,
                        dirty = excluded.dirty,
                        modified_at = excluded.modified_at
                    """,
                    counters,
                )
            if items:
                conn.executemany(
                    """
                    INSERT INTO checklist
                    (name, date, category, display_label, completed, completed_at, dirty, modified_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(name, date) DO UPDATE SET
                        category = excluded.category,
                        display_label = excluded.display_label,
                        completed = excluded.completed,
                        completed_at = excluded.completed_at,
                        dirty = excluded.dirty,
                        modified_at = excluded.modified_at
                    """,
                    items,
                )

    def mark_synced(
        self,
        name: str,
        date: str,
        kind: RecordKind,
        pushed_value: Optional[object] = None,
    ) -> bool:
        """Clear ``dirty`` for exactly one record.

        With ``pushed_value`` the flag is only cleared while the stored value
        still equals what the server accepted, so an increment that landed
        during the push stays dirty. Returns True if the flag was cleared.
        """
        if kind is RecordKind.COUNTER:
            sql = "UPDATE counters SET dirty = 0 WHERE name = ? AND date = ? AND dirty = 1"
            column = "count"
        else:
            sql = "UPDATE checklist SET dirty = 0 WHERE name = ? AND date = ? AND dirty = 1"
            column = "completed"

        params: list = [name, date]
        if pushed_value is not None:
            sql += f" AND {column} = ?"
            params.append(int(pushed_value))

        with self._get_connection() as conn:
            cursor = conn.execute(sql, params)
            cleared = cursor.rowcount > 0

        if cleared:
            logger.debug(f"Marked {kind.value}:{name}@{date} synced")
        return cleared

    # === Dirty tracking ===

    def query_dirty(self) -> list[Record]:
        """All dirty records across all dates, served by the partial dirty indexes."""
        with self._get_connection() as conn:
            counter_rows = conn.execute(
                "SELECT * FROM counters WHERE dirty = 1 ORDER BY date, name"
            ).fetchall()
            checklist_rows = conn.execute(
                "SELECT * FROM checklist WHERE dirty = 1 ORDER BY date, name"
            ).fetchall()
        records: list[Record] = [self._counter_from_row(r) for r in counter_rows]
        records.extend(self._checklist_from_row(r) for r in checklist_rows)
        return records

    def pending_count(self) -> int:
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT (SELECT COUNT(*) FROM counters WHERE dirty = 1)
                     + (SELECT COUNT(*) FROM checklist WHERE dirty = 1) AS pending
                """
            ).fetchone()
        return row["pending"]

    def has_pending(self) -> bool:
        return self.pending_count() > 0
