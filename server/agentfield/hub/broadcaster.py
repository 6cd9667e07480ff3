from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from agentfield.hub.registry import ConnectionRegistry, ConnectionState
from agentfield.protocol.codec import build_message, encode_agents, now_ms
from agentfield.sim.engine import World


LOGGER = logging.getLogger("agentfield.hub.broadcaster")


class Broadcaster:
    """Fans the current snapshot out to every registered connection.

    Each send runs in its own task and at most one send per connection is
    in flight. A connection still busy with an earlier send is skipped for
    the interval and diffed again on the next one.
    """

    def __init__(
        self,
        world: World,
        registry: ConnectionRegistry,
        clock: Callable[[], float] = time.monotonic,
        wall_clock_ms: Callable[[], int] = now_ms,
    ):
        self.world = world
        self.registry = registry
        self._clock = clock
        self._wall_clock_ms = wall_clock_ms
        self._inflight: dict[int, asyncio.Task] = {}
        self.messages_sent = 0

    @property
    def pending(self) -> int:
        return len(self._inflight)

    def _encode_snapshot(self) -> str:
        return encode_agents(self.world.snapshot())

    async def _send(self, state: ConnectionState, agents_json: str, message: str) -> bool:
        try:
            await state.connection.send(message)
        except Exception as exc:
            LOGGER.warning("error sending state to client: %s", exc)
            self.registry.remove(state.connection)
            return False

        state.last_payload = agents_json
        state.last_broadcast = self._clock()
        self.messages_sent += 1
        return True

    def _schedule(self, state: ConnectionState, agents_json: str, message: str) -> asyncio.Task | None:
        key = id(state.connection)
        if key in self._inflight:
            return None
        task = asyncio.create_task(self._send(state, agents_json, message))
        self._inflight[key] = task
        task.add_done_callback(lambda _done: self._inflight.pop(key, None))
        return task

    async def send_initial(self, state: ConnectionState) -> bool:
        """Send the full current snapshot to a freshly registered connection."""
        agents_json = self._encode_snapshot()
        task = self._schedule(state, agents_json, build_message(agents_json, self._wall_clock_ms()))
        if task is None:
            return state.connection in self.registry
        return await task

    async def broadcast_once(self) -> int:
        if not len(self.registry):
            return 0

        agents_json = self._encode_snapshot()
        message = build_message(agents_json, self._wall_clock_ms())
        scheduled = 0
        for state in self.registry.states():
            if state.last_payload == agents_json:
                continue
            if self._schedule(state, agents_json, message) is not None:
                scheduled += 1
        return scheduled

    async def drain(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def cancel_pending(self) -> None:
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
