from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable


LOGGER = logging.getLogger("agentfield.hub.registry")


@dataclass(eq=False)
class ConnectionState:
    connection: Any
    alive: bool = True
    missed_heartbeats: int = 0
    last_broadcast: float = field(default_factory=time.monotonic)
    last_payload: str = ""


def force_close(connection: Any) -> None:
    """Drop the transport without a closing handshake."""
    transport = getattr(connection, "transport", None)
    if transport is None:
        return
    try:
        transport.abort()
    except Exception as exc:
        LOGGER.warning("error terminating connection: %s", exc)


class ConnectionRegistry:
    """Live set of simulation connections keyed by connection identity.

    All mutation happens synchronously on the event loop thread, so an
    iteration over ``states()`` (a copy) never sees a half-removed entry
    and removal from inside such an iteration is safe.
    """

    def __init__(self, ignored_subprotocols: Iterable[str] = ("vite-hmr",), clock: Callable[[], float] = time.monotonic):
        self.ignored_subprotocols = frozenset(ignored_subprotocols)
        self._clock = clock
        self._states: dict[int, ConnectionState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, connection: Any) -> bool:
        return id(connection) in self._states

    def register(self, connection: Any) -> ConnectionState | None:
        subprotocol = getattr(connection, "subprotocol", None)
        if subprotocol in self.ignored_subprotocols:
            LOGGER.info("ignoring %s connection", subprotocol)
            return None

        existing = self._states.get(id(connection))
        if existing is not None:
            return existing

        state = ConnectionState(connection=connection, last_broadcast=self._clock())
        self._states[id(connection)] = state
        LOGGER.info("new simulation client connected (total=%d)", len(self._states))
        return state

    def get(self, connection: Any) -> ConnectionState | None:
        return self._states.get(id(connection))

    def remove(self, connection: Any) -> bool:
        state = self._states.pop(id(connection), None)
        if state is None:
            return False
        force_close(connection)
        LOGGER.info("removed client connection (total=%d)", len(self._states))
        return True

    def states(self) -> list[ConnectionState]:
        return list(self._states.values())

    async def for_each(self, fn: Callable[[ConnectionState], Awaitable[None] | None]) -> None:
        # Entries removed by an earlier callback in the same pass are skipped.
        for state in self.states():
            if state.connection not in self:
                continue
            result = fn(state)
            if inspect.isawaitable(result):
                await result

    def close_all(self) -> int:
        closed = 0
        for state in self.states():
            if self.remove(state.connection):
                closed += 1
        return closed
