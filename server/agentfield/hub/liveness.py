"""Heartbeat-based eviction of unresponsive connections.

Each heartbeat cycle, per connection:

* a connection whose previous ping went unanswered gets ``missed_heartbeats``
  incremented and is evicted once that reaches ``max_missed``;
* a connection with nothing delivered (broadcast or pong) for more than two
  heartbeat intervals is evicted as stale;
* otherwise ``alive`` is cleared and a native ping frame is sent. The pong
  callback sets ``alive`` again and resets the missed count.

This module is the only writer of ``alive`` and ``missed_heartbeats``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Callable

from agentfield.hub.registry import ConnectionRegistry, ConnectionState


LOGGER = logging.getLogger("agentfield.hub.liveness")


def _is_open(connection) -> bool:
    state = getattr(connection, "state", None)
    if state is None:
        return True
    # websockets.protocol.State.OPEN
    return getattr(state, "name", state) == "OPEN"


class LivenessMonitor:
    def __init__(
        self,
        registry: ConnectionRegistry,
        interval_sec: float = 30.0,
        max_missed: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.interval_sec = interval_sec
        self.max_missed = max_missed
        self._clock = clock
        self.evictions = 0

    @property
    def stale_after_sec(self) -> float:
        return self.interval_sec * 2

    def _evict(self, state: ConnectionState, reason: str) -> None:
        if self.registry.remove(state.connection):
            self.evictions += 1
            LOGGER.info("evicting client: %s", reason)

    def _on_pong(self, state: ConnectionState, waiter: asyncio.Future) -> None:
        if waiter.cancelled() or waiter.exception() is not None:
            return
        if state.connection not in self.registry:
            return
        state.alive = True
        state.missed_heartbeats = 0
        state.last_broadcast = self._clock()

    async def _check(self, state: ConnectionState, now: float) -> None:
        connection = state.connection
        if not _is_open(connection):
            self._evict(state, "connection not open")
            return

        if not state.alive:
            state.missed_heartbeats += 1
            if state.missed_heartbeats >= self.max_missed:
                self._evict(state, f"missed {state.missed_heartbeats} heartbeats")
                return

        if now - state.last_broadcast > self.stale_after_sec:
            self._evict(state, "connection stale")
            return

        state.alive = False
        try:
            waiter = await connection.ping()
        except Exception as exc:
            LOGGER.warning("error pinging client: %s", exc)
            self._evict(state, "ping failed")
            return
        waiter.add_done_callback(partial(self._on_pong, state))

    async def heartbeat_once(self, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        await self.registry.for_each(partial(self._check, now=now))
