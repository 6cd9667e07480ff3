"""Client-side connection management for the simulation stream.

State machine::

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED --(abnormal close)--> CONNECTING   (after backoff)
    CONNECTED --(clean close)-----> DISCONNECTED (terminal)
    CONNECTING --(retry budget spent)--> FAILED  (terminal, notifies once)

A failed connection attempt counts as an abnormal close. The attempt
counter resets whenever a connection opens.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from agentfield.config import ClientSettings
from agentfield.protocol.codec import decode_message
from agentfield.protocol.models import AgentRecord


LOGGER = logging.getLogger("agentfield.client.reconnector")

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class ConnectionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class Reconnector:
    def __init__(
        self,
        url: str,
        on_agents: Callable[[list[AgentRecord]], None],
        on_failure: Callable[[], None],
        *,
        subprotocol: str = "simulation",
        base_delay_sec: float = 1.0,
        cap_attempts: int = 5,
        max_attempts: int = 3,
        connect: Callable[..., Awaitable[Any]] = ws_connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.subprotocol = subprotocol
        self.base_delay_sec = base_delay_sec
        self.cap_attempts = cap_attempts
        self.max_attempts = max_attempts
        self._on_agents = on_agents
        self._on_failure = on_failure
        self._connect = connect
        self._sleep = sleep

        self.phase = ConnectionPhase.DISCONNECTED
        self.attempt = 0
        self.connections_opened = 0
        self._connection: Any = None
        self._task: asyncio.Task | None = None
        self._closing = False
        self._failure_notified = False

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        on_agents: Callable[[list[AgentRecord]], None],
        on_failure: Callable[[], None],
    ) -> "Reconnector":
        return cls(
            settings.url,
            on_agents,
            on_failure,
            subprotocol=settings.subprotocol,
            base_delay_sec=settings.base_delay_sec,
            cap_attempts=settings.cap_attempts,
            max_attempts=settings.max_attempts,
        )

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay_sec * min(attempt, self.cap_attempts)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._closing = False
            self._task = asyncio.create_task(self.run(), name="sim-client")
        return self._task

    async def wait(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def close(self) -> None:
        """Intentional teardown: no reconnect is scheduled afterwards."""
        self._closing = True
        connection = self._connection
        if connection is not None:
            with contextlib.suppress(Exception):
                await connection.close(NORMAL_CLOSURE, "client closing")

        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.phase is not ConnectionPhase.FAILED:
            self.phase = ConnectionPhase.DISCONNECTED

    async def run(self) -> ConnectionPhase:
        while not self._closing:
            self.phase = ConnectionPhase.CONNECTING
            close_code = await self._connect_once()

            if self._closing or close_code == NORMAL_CLOSURE:
                LOGGER.info("connection closed cleanly")
                self.phase = ConnectionPhase.DISCONNECTED
                break

            self.attempt += 1
            if self.attempt > self.max_attempts:
                self._fail()
                break

            delay = self.backoff_delay(self.attempt)
            LOGGER.info("reconnecting in %.1fs (attempt %d)", delay, self.attempt)
            await self._sleep(delay)
        return self.phase

    async def _connect_once(self) -> int:
        try:
            connection = await self._connect(self.url, subprotocols=[self.subprotocol], ping_interval=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            LOGGER.warning("failed to connect to %s: %s", self.url, exc)
            return ABNORMAL_CLOSURE

        self._connection = connection
        self.phase = ConnectionPhase.CONNECTED
        self.attempt = 0
        self.connections_opened += 1
        LOGGER.info("connected to %s", self.url)

        try:
            async for raw in connection:
                self._handle_message(raw)
        except ConnectionClosed:
            pass
        finally:
            self._connection = None

        code = connection.close_code
        LOGGER.info("connection closed: code=%s reason=%s", code, connection.close_reason)
        return ABNORMAL_CLOSURE if code is None else code

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = decode_message(raw)
        except ValidationError as exc:
            LOGGER.warning("discarding malformed message: %s", exc.errors()[:1])
            return
        try:
            self._on_agents(message.agents)
        except Exception:
            LOGGER.exception("presentation callback failed; message dropped")

    def _fail(self) -> None:
        self.phase = ConnectionPhase.FAILED
        if self._failure_notified:
            return
        self._failure_notified = True
        LOGGER.error("giving up after %d reconnect attempts", self.max_attempts)
        self._on_failure()
