"""
Unit tests for ExpirySweeper and KeepalivePinger
================================================
"""

import asyncio

import pytest

from backend import epoch_ms
from sweeper import ExpirySweeper, KeepalivePinger
from fakes import FakeWebSocket, connected_socket


class TestExpirySweeper:

    @pytest.mark.asyncio
    async def test_sweep_evicts_expired_session_and_closes_members(self, registry, clock):
        ws_a = await connected_socket()
        ws_b = await connected_socket()
        await registry.admit("OLD", ws_a)
        await registry.admit("OLD", ws_b)
        clock.advance(601)

        evicted = await ExpirySweeper(registry, ttl=600).sweep()

        assert evicted == ["OLD"]
        assert await registry.snapshot("OLD") is None
        assert ws_a.closed_with == (1000, "expired")
        assert ws_b.closed_with == (1000, "expired")

    @pytest.mark.asyncio
    async def test_sweep_keeps_young_sessions(self, registry, clock):
        ws = await connected_socket()
        await registry.admit("YOUNG", ws)
        clock.advance(599)

        assert await ExpirySweeper(registry, ttl=600).sweep() == []
        assert await registry.snapshot("YOUNG") is not None
        assert ws.closed_with is None

    @pytest.mark.asyncio
    async def test_sweep_evicts_empty_precreated_sessions(self, registry, clock):
        await registry.ensure("IDLE")
        clock.advance(601)

        assert await ExpirySweeper(registry, ttl=600).sweep() == ["IDLE"]
        assert await registry.count() == 0

    @pytest.mark.asyncio
    async def test_close_failure_does_not_stop_sweep(self, registry, clock):
        broken = await connected_socket()

        async def failing_close(code=1000, reason=None):
            raise RuntimeError("already gone")

        broken.close = failing_close
        ok = await connected_socket()
        await registry.admit("A", broken)
        await registry.admit("B", ok)
        clock.advance(700)

        evicted = await ExpirySweeper(registry, ttl=600).sweep()

        assert sorted(evicted) == ["A", "B"]
        assert ok.closed_with == (1000, "expired")

    @pytest.mark.asyncio
    async def test_evicted_connections_leave_quietly(self, handler, registry, clock):
        ws1 = FakeWebSocket()
        ws2 = FakeWebSocket()
        t1 = asyncio.create_task(handler.serve(ws1, "GONE", "caller"))
        t2 = asyncio.create_task(handler.serve(ws2, "GONE", "callee"))
        for _ in range(3):
            await ws1.next_message()
        for _ in range(2):
            await ws2.next_message()
        clock.advance(601)

        await ExpirySweeper(registry, ttl=600).sweep()
        await asyncio.gather(t1, t2)

        assert ws1.closed_with == (1000, "expired")
        assert ws2.closed_with == (1000, "expired")
        assert "member.left" not in ws1.types_sent() + ws2.types_sent()
        assert await registry.count() == 0

    @pytest.mark.asyncio
    async def test_periodic_run_sweeps_until_stopped(self, registry, clock):
        await registry.ensure("TICK")
        clock.advance(601)
        sweeper = ExpirySweeper(registry, ttl=600, interval=0.01)

        sweeper.start()
        for _ in range(100):
            if await registry.count() == 0:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert await registry.count() == 0


class TestKeepalivePinger:

    @pytest.mark.asyncio
    async def test_ping_all_reaches_every_open_connection(self, registry, clock):
        sockets = [await connected_socket() for _ in range(3)]
        await registry.admit("A", sockets[0])
        await registry.admit("A", sockets[1])
        await registry.admit("B", sockets[2])
        await sockets[1].close()

        sent = await KeepalivePinger(registry).ping_all()

        assert sent == 2
        expected = {"type": "ping", "t": epoch_ms(clock.now)}
        assert sockets[0].sent == [expected]
        assert sockets[1].sent == []
        assert sockets[2].sent == [expected]

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, registry):
        await KeepalivePinger(registry).stop()

    @pytest.mark.asyncio
    async def test_periodic_run_pings_until_stopped(self, registry):
        ws = await connected_socket()
        await registry.admit("TICK", ws)
        pinger = KeepalivePinger(registry, interval=0.01)

        pinger.start()
        for _ in range(100):
            if len(ws.sent) >= 2:
                break
            await asyncio.sleep(0.01)
        await pinger.stop()
        ticks = len(ws.sent)
        await asyncio.sleep(0.05)

        assert ticks >= 2
        assert all(message["type"] == "ping" for message in ws.sent)
        assert len(ws.sent) == ticks
