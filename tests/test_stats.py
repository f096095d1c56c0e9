"""
Statistics Tests
"""

from conftest import put_counter
from tracker.stats import calculate_streak, day_complete, weekly_stats


def complete_day(store, date):
    put_counter(store, "first", date, 108, target=108)
    put_counter(store, "third", date, 1000, target=1000)
    put_counter(store, "dandavat", date, 3, target=None)


class TestStreak:
    """Tests for consecutive complete days."""

    def test_no_history(self, store):
        assert calculate_streak(store, "2025-03-10") == 0

    def test_today_incomplete_counts_from_yesterday(self, store):
        for day in ("2025-03-07", "2025-03-08", "2025-03-09"):
            complete_day(store, day)
        put_counter(store, "first", "2025-03-10", 50, target=108)
        put_counter(store, "third", "2025-03-10", 1000, target=1000)

        assert calculate_streak(store, "2025-03-10") == 3

    def test_today_complete_included(self, store):
        for day in ("2025-03-08", "2025-03-09", "2025-03-10"):
            complete_day(store, day)
        assert calculate_streak(store, "2025-03-10") == 3

    def test_gap_breaks_streak(self, store):
        for day in ("2025-03-05", "2025-03-06", "2025-03-08", "2025-03-09"):
            complete_day(store, day)
        assert calculate_streak(store, "2025-03-09") == 2

    def test_streak_does_not_materialize(self, store):
        calculate_streak(store, "2025-03-10")
        assert store.peek_counters("2025-03-10") == []

    def test_untargeted_only_day_is_not_complete(self, store):
        put_counter(store, "dandavat", "2025-03-10", 40, target=None)
        assert day_complete(store.peek_counters("2025-03-10")) is False

    def test_streak_stops_at_limit(self, store, monkeypatch):
        import tracker.stats

        monkeypatch.setattr(tracker.stats, "STREAK_LIMIT_DAYS", 2)
        for day in ("2025-03-07", "2025-03-08", "2025-03-09", "2025-03-10"):
            complete_day(store, day)
        assert calculate_streak(store, "2025-03-10") == 2


class TestWeeklyStats:
    """Tests for the seven-day table."""

    def test_seven_days_oldest_first(self, store):
        put_counter(store, "first", "2025-03-10", 20, target=108)
        put_counter(store, "dandavat", "2025-03-04", 2, target=None)
        put_counter(store, "first", "2025-03-03", 99, target=108)

        stats = weekly_stats(store, "2025-03-10")

        assert [row["date"] for row in stats] == [
            "2025-03-04", "2025-03-05", "2025-03-06", "2025-03-07",
            "2025-03-08", "2025-03-09", "2025-03-10",
        ]
        assert stats[0]["counts"] == {"first": 0, "third": 0, "dandavat": 2}
        assert stats[-1]["counts"]["first"] == 20
        assert stats[3]["counts"] == {"first": 0, "third": 0, "dandavat": 0}
