from __future__ import annotations

import asyncio
import random

import pytest

from agentfield.sim.engine import World


class FakeTransport:
    def __init__(self) -> None:
        self.aborts = 0

    def abort(self) -> None:
        self.aborts += 1


class FakeConnection:
    """Stands in for ``websockets.asyncio.server.ServerConnection``."""

    def __init__(self, subprotocol: str | None = "simulation") -> None:
        self.subprotocol = subprotocol
        self.transport = FakeTransport()
        self.sent: list[str] = []
        self.pings: list[asyncio.Future] = []
        self.fail_send = False
        self.fail_ping = False
        self.closed = asyncio.Event()
        self.inbound: list[str] = []

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise ConnectionResetError("broken pipe")
        self.sent.append(message)

    async def ping(self) -> asyncio.Future:
        if self.fail_ping:
            raise ConnectionResetError("broken pipe")
        waiter = asyncio.get_running_loop().create_future()
        self.pings.append(waiter)
        return waiter

    def pong(self) -> None:
        self.pings[-1].set_result(0.001)

    async def wait_closed(self) -> None:
        await self.closed.wait()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.inbound:
            yield message


@pytest.fixture
def small_world() -> World:
    return World(agent_count=8, width=20.0, height=12.0, rng=random.Random(1234), now=lambda: "2024-01-01T00:00:00.000Z")


@pytest.fixture
def fake_connection_factory():
    return FakeConnection
