"""
Sync Engine Tests

End-to-end runs of the client against the FastAPI server through
httpx.ASGITransport, plus an unreachable server through MockTransport.
"""

import asyncio

import httpx
import pytest

from tracker.engine import SyncEngine, sync_session


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def offline_transport() -> httpx.MockTransport:
    return httpx.MockTransport(refuse)


def server_transport() -> httpx.ASGITransport:
    from api.main import app
    return httpx.ASGITransport(app=app)


@pytest.fixture
async def server_db():
    """Create the server tables on the test database."""
    from api.models.database import init_db
    await init_db()


def test_engine_imports():
    """Test that the public surface imports cleanly."""
    from tracker import LocalStore, SyncConfig, SyncEngine, create_sync_engine, sync_session

    assert SyncEngine is not None
    assert sync_session is not None


class TestOffline:
    """Engine behavior with no server."""

    @pytest.mark.asyncio
    async def test_local_first_increments(self, config):
        async with sync_session(config, transport=offline_transport()) as engine:
            engine.ensure_day("2025-04-01")
            for _ in range(3):
                await engine.increment("first", "2025-04-01")
            await engine.mutations.wait_for_pushes()

            day = engine.local_day("2025-04-01")
            assert day.counter("first").count == 3
            assert day.counter("first").dirty is True
            assert engine.status.is_online is False
            assert engine.get_sync_status()["pending"] == 1

    @pytest.mark.asyncio
    async def test_load_day_offline_returns_defaults(self, config):
        async with sync_session(config, transport=offline_transport()) as engine:
            day = await engine.load_day("2025-04-02")
            assert len(day.counters) == 3
            assert len(day.checklist) == 6

    @pytest.mark.asyncio
    async def test_sync_all_reports_failure(self, config):
        async with sync_session(config, transport=offline_transport()) as engine:
            engine.ensure_day("2025-04-03")
            await engine.toggle("morning_aarti", "2025-04-03")
            await engine.mutations.wait_for_pushes()

            result = await engine.sync_all(["2025-04-03"])
            assert result.success is False
            assert result.pending == 1
            assert engine.status.is_syncing is False

    @pytest.mark.asyncio
    async def test_status_listener_sees_offline(self, config):
        seen = []
        async with sync_session(config, transport=offline_transport()) as engine:
            engine.subscribe(seen.append)
            await engine.load_day("2025-04-04")
        assert any(not state.is_online for state in seen)


class TestAgainstServer:
    """Engine behavior with the reference server."""

    @pytest.mark.asyncio
    async def test_offline_taps_reach_fresh_server(self, config, server_db):
        date = "2025-03-01"

        async with sync_session(config, transport=offline_transport()) as engine:
            engine.ensure_day(date)
            for _ in range(5):
                await engine.increment("first", date)
            await engine.mutations.wait_for_pushes()
            assert engine.local_day(date).counter("first").dirty is True

        async with sync_session(config, transport=server_transport()) as engine:
            day = await engine.load_day(date)
            await asyncio.wait_for(engine.supervisor.wait_idle(), timeout=10)

            first = engine.local_day(date).counter("first")
            assert (first.count, first.target, first.dirty) == (5, 108, False)
            assert day.counter("first").count == 5

            remote = {c.name: c for c in await engine.remote.fetch_counters(date)}
            assert remote["first"].count == 5
            assert remote["first"].target == 108
            assert engine.status.is_online is True

    @pytest.mark.asyncio
    async def test_online_toggle_round_trip(self, config, server_db):
        date = "2025-03-02"
        async with sync_session(config, transport=server_transport()) as engine:
            await engine.load_day(date)
            await engine.toggle("evening_aarti", date)
            await engine.mutations.wait_for_pushes()

            item = engine.local_day(date).item("evening_aarti")
            assert item.completed is True
            assert item.dirty is False

            remote = {a.name: a for a in await engine.remote.fetch_checklist(date)}
            assert remote["evening_aarti"].completed is True
            assert remote["evening_aarti"].display_name == "Evening Aarti"

    @pytest.mark.asyncio
    async def test_sync_all_covers_dirty_dates(self, config, server_db):
        async with sync_session(config, transport=offline_transport()) as engine:
            for date in ("2025-03-03", "2025-03-04"):
                engine.ensure_day(date)
                await engine.increment("third", date)
            await engine.mutations.wait_for_pushes()

        async with sync_session(config, transport=server_transport()) as engine:
            result = await engine.sync_all(["2025-03-05"])
            await asyncio.wait_for(engine.supervisor.wait_idle(), timeout=10)

            assert result.dates == ["2025-03-03", "2025-03-04", "2025-03-05"]
            assert engine.store.pending_count() == 0
            assert engine.status.state.last_sync is not None

    @pytest.mark.asyncio
    async def test_server_ahead_is_pulled(self, config, server_db):
        date = "2025-03-06"
        async with sync_session(config, transport=server_transport()) as engine:
            await engine.load_day(date)
            assert await engine.remote.push_counter_count("first", date, 40) is True

            day = await engine.load_day(date)
            assert day.counter("first").count == 40
            assert day.counter("first").dirty is False


@pytest.mark.asyncio
async def test_engine_close_is_clean(config):
    engine = SyncEngine(config, transport=offline_transport())
    await engine.start()
    assert engine.supervisor.running is True
    await engine.close()
    assert engine.supervisor.running is False
