"""SyncService: start/stop of the periodic tasks and connection cleanup."""

import asyncio

import pytest

from agentfield.config import SyncSettings
from agentfield.service import SyncService


def _settings(**overrides):
    values = {
        "host": "127.0.0.1",
        "port": 0,
        "agent_count": 10,
        "seed": 3,
        "tick_interval_ms": 5.0,
        "broadcast_interval_ms": 10.0,
        "heartbeat_interval_sec": 60.0,
    }
    values.update(overrides)
    return SyncSettings(**values)


class TestSyncService:
    def test_seeded_worlds_match(self):
        first, second = SyncService(_settings()), SyncService(_settings())
        a = [(x.position.x, x.position.y) for x in first.world.world_state.agents.values()]
        b = [(x.position.x, x.position.y) for x in second.world.world_state.agents.values()]
        assert a == b

    @pytest.mark.asyncio
    async def test_clock_and_broadcast_run(self, fake_connection_factory):
        service = SyncService(_settings())
        connection = fake_connection_factory()
        service.registry.register(connection)

        await service.start(serve=False)
        await asyncio.sleep(0.1)
        assert service.running
        assert service.world.world_state.tick > 0
        assert connection.sent
        await asyncio.wait_for(service.stop(), timeout=2.0)
        assert not service.running

    @pytest.mark.asyncio
    async def test_stop_cancels_tasks_and_closes_connections(self, fake_connection_factory):
        service = SyncService(_settings())
        connections = [fake_connection_factory() for _ in range(2)]
        for connection in connections:
            service.registry.register(connection)

        await service.start(serve=False)
        await service.stop()
        await service.stop()

        assert not service.running
        assert len(service.registry) == 0
        assert all(c.transport.aborts == 1 for c in connections)

    @pytest.mark.asyncio
    async def test_stop_closes_listener(self):
        service = SyncService(_settings())
        await service.start()
        assert service._server is not None
        await service.stop()
        assert service._server is None

    @pytest.mark.asyncio
    async def test_stop_is_not_held_up_by_stalled_send(self, fake_connection_factory):
        service = SyncService(_settings())
        stalled = fake_connection_factory()
        sending = asyncio.Event()

        async def stalled_send(message):
            sending.set()
            await asyncio.Event().wait()

        stalled.send = stalled_send
        service.registry.register(stalled)

        await service.start(serve=False)
        await asyncio.wait_for(sending.wait(), timeout=1.0)
        await asyncio.wait_for(service.stop(), timeout=2.0)

        assert not service.running
        assert service.broadcaster.pending == 0
        assert stalled.transport.aborts == 1
