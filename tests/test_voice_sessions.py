import asyncio
from datetime import timedelta

import pytest

from app.services.voice_sessions import IDLE_CLOSE_CODE, VoiceSessionRegistry

from conftest import FakeWebSocket


def test_register_and_touch_bumps_last_activity(registry, clock):
    conn = FakeWebSocket()
    registry.register(7, "a@b.com", conn, 42)
    clock.advance(minutes=3)

    session = registry.touch(conn)

    assert session is not None
    assert session.chat_id == 42
    assert session.last_activity == clock.now


def test_touch_unknown_connection_signals_unauthenticated(registry):
    assert registry.touch(FakeWebSocket()) is None


def test_remove_drops_only_that_connection(registry):
    first, second = FakeWebSocket(), FakeWebSocket()
    registry.register(1, "one@example.com", first, 10)
    registry.register(2, "two@example.com", second, 20)

    registry.remove(first)

    assert registry.get(first) is None
    assert registry.get(second) is not None
    assert len(registry) == 1


def test_reregister_same_user_returns_superseded_connection(registry):
    old, new = FakeWebSocket(), FakeWebSocket()
    assert registry.register(7, "a@b.com", old, 42) is None

    superseded = registry.register(7, "a@b.com", new, 43)

    assert superseded is old
    assert registry.get(old) is None
    assert registry.get(new).chat_id == 43
    assert len(registry) == 1


def test_one_session_per_connection(registry):
    conn = FakeWebSocket()
    registry.register(7, "a@b.com", conn, 42)
    registry.register(8, "c@d.com", conn, 50)

    assert len(registry) == 1
    assert registry.get(conn).user_id == 8


@pytest.mark.asyncio
async def test_sweep_keeps_session_active_29_minutes_ago(registry, clock):
    conn = FakeWebSocket()
    registry.register(7, "a@b.com", conn, 42)

    await registry.sweep(clock.now + timedelta(minutes=29))

    assert registry.get(conn) is not None
    assert not conn.closed


@pytest.mark.asyncio
async def test_sweep_evicts_session_idle_31_minutes_and_closes_it(registry, clock):
    idle, fresh = FakeWebSocket(), FakeWebSocket()
    registry.register(7, "a@b.com", idle, 42)
    clock.advance(minutes=20)
    registry.register(8, "c@d.com", fresh, 50)

    await registry.sweep(clock.now - timedelta(minutes=20) + timedelta(minutes=31))

    assert registry.get(idle) is None
    assert idle.closed
    assert idle.close_code == IDLE_CLOSE_CODE
    assert registry.get(fresh) is not None
    assert not fresh.closed


@pytest.mark.asyncio
async def test_sweep_tolerates_connection_that_fails_to_close(registry, clock):
    class BrokenSocket(FakeWebSocket):
        async def close(self, code=1000, reason=None):
            raise RuntimeError("already closed")

    conn = BrokenSocket()
    registry.register(7, "a@b.com", conn, 42)

    await registry.sweep(clock.now + timedelta(minutes=31))

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_background_sweeper_evicts_idle_sessions(clock):
    registry = VoiceSessionRegistry(idle_timeout=timedelta(minutes=30), sweep_interval=0.01, clock=clock)
    conn = FakeWebSocket()
    registry.register(7, "a@b.com", conn, 42)
    clock.advance(minutes=31)

    registry.start()
    try:
        for _ in range(100):
            if conn.closed:
                break
            await asyncio.sleep(0.01)
    finally:
        await registry.stop()

    assert conn.closed
    assert len(registry) == 0
