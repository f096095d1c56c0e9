"""
Sync Status Tests
"""

from tracker.status import SyncStatus


class TestSyncStatus:
    """Tests for the observable sync state."""

    def test_defaults(self):
        status = SyncStatus()
        assert status.is_online is True
        assert status.is_syncing is False
        assert status.has_pending is False

    def test_listener_notified_on_change_only(self):
        status = SyncStatus()
        seen = []
        status.subscribe(seen.append)

        status.mark_offline()
        status.mark_offline()
        status.set_pending(2)
        status.set_pending(2)

        assert len(seen) == 2
        assert seen[0].is_online is False
        assert seen[1].pending_count == 2
        assert seen[1].has_pending is True

    def test_unsubscribe(self):
        status = SyncStatus()
        seen = []
        unsubscribe = status.subscribe(seen.append)
        unsubscribe()
        status.mark_offline()
        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        status = SyncStatus()
        seen = []

        def broken(state):
            raise RuntimeError("boom")

        status.subscribe(broken)
        status.subscribe(seen.append)
        status.mark_offline()
        assert len(seen) == 1

    def test_begin_sync_is_exclusive(self):
        status = SyncStatus()
        assert status.begin_sync() is True
        assert status.begin_sync() is False
        status.end_sync()
        assert status.is_syncing is False
        assert status.state.last_sync is not None

    def test_aborted_sync_keeps_last_sync(self):
        status = SyncStatus()
        status.begin_sync()
        status.end_sync(completed=False)
        assert status.state.last_sync is None

    def test_clear_drops_listeners(self):
        status = SyncStatus()
        seen = []
        status.subscribe(seen.append)
        status.clear()
        status.set_pending(1)
        assert seen == []
