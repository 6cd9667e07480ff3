from __future__ import annotations

import logging
import random

from websockets.asyncio.server import Server

from agentfield.config import SyncSettings
from agentfield.hub.broadcaster import Broadcaster
from agentfield.hub.liveness import LivenessMonitor
from agentfield.hub.registry import ConnectionRegistry
from agentfield.hub.server import SimulationEndpoint
from agentfield.sim.clock import SimulationClock
from agentfield.sim.engine import World
from agentfield.tasks import PeriodicTask


LOGGER = logging.getLogger("agentfield.service")


class SyncService:
    """Owns the world, the connection registry and the three periodic tasks."""

    def __init__(self, settings: SyncSettings, world: World | None = None):
        self.settings = settings
        self.world = world or World(
            agent_count=settings.agent_count,
            width=settings.world_width,
            height=settings.world_height,
            rng=random.Random(settings.seed),
            nominal_frame_ms=settings.nominal_frame_ms,
            max_time_scale=settings.max_time_scale,
        )
        self.registry = ConnectionRegistry(ignored_subprotocols=settings.ignored_subprotocols)
        self.clock = SimulationClock(self.world, max_delta_ms=settings.max_delta_ms)
        self.broadcaster = Broadcaster(self.world, self.registry)
        self.monitor = LivenessMonitor(
            self.registry,
            interval_sec=settings.heartbeat_interval_sec,
            max_missed=settings.max_missed_heartbeats,
        )
        self.endpoint = SimulationEndpoint(self.registry, self.broadcaster, path=settings.path)

        self.tasks = [
            PeriodicTask("sim-clock", settings.tick_interval_ms / 1000.0, self.clock.advance),
            PeriodicTask("sim-broadcast", settings.broadcast_interval_ms / 1000.0, self.broadcaster.broadcast_once),
            PeriodicTask("sim-heartbeat", settings.heartbeat_interval_sec, self.monitor.heartbeat_once),
        ]
        self._server: Server | None = None
        self._stopping = False

    @property
    def running(self) -> bool:
        return any(task.running for task in self.tasks)

    async def start(self, serve: bool = True) -> None:
        self._stopping = False
        for task in self.tasks:
            task.start()
        if serve and self._server is None:
            self._server = await self.endpoint.start(self.settings.host, self.settings.port)
        LOGGER.info(
            "simulation started: tick=%.0fms broadcast=%.0fms heartbeat=%.1fs",
            self.settings.tick_interval_ms,
            self.settings.broadcast_interval_ms,
            self.settings.heartbeat_interval_sec,
        )

    async def stop(self) -> None:
        if self._stopping:
            return
        self._stopping = True
        LOGGER.info("shutting down, cleaning up simulation")

        for task in self.tasks:
            await task.stop()
        await self.broadcaster.cancel_pending()
        closed = self.registry.close_all()

        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()
        LOGGER.info("simulation stopped (%d connections closed)", closed)
