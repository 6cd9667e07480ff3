from __future__ import annotations

import http
import logging
from typing import Sequence

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from agentfield.hub.broadcaster import Broadcaster
from agentfield.hub.registry import ConnectionRegistry


LOGGER = logging.getLogger("agentfield.hub.server")


class SimulationEndpoint:
    def __init__(self, registry: ConnectionRegistry, broadcaster: Broadcaster, path: str = "/ws"):
        self.registry = registry
        self.broadcaster = broadcaster
        self.path = path

    def process_request(self, connection: ServerConnection, request: Request) -> Response | None:
        if request.path.split("?", 1)[0] != self.path:
            return connection.respond(http.HTTPStatus.NOT_FOUND, "not found\n")
        return None

    def select_subprotocol(self, connection: ServerConnection, subprotocols: Sequence[str]) -> str | None:
        # Echo whatever the client asked for; tooling sub-protocols are
        # filtered after the handshake instead of failing it.
        return subprotocols[0] if subprotocols else None

    async def handle(self, connection: ServerConnection) -> None:
        state = self.registry.register(connection)
        if state is None:
            await connection.wait_closed()
            return

        try:
            if not await self.broadcaster.send_initial(state):
                return
            async for _ in connection:
                # No client -> server application messages are defined.
                pass
        except ConnectionClosed:
            pass
        except Exception as exc:
            LOGGER.warning("websocket error: %s", exc)
        finally:
            if self.registry.get(connection) is state:
                LOGGER.info("client disconnected")
            self.registry.remove(connection)

    async def start(self, host: str, port: int) -> Server:
        server = await serve(
            self.handle,
            host,
            port,
            process_request=self.process_request,
            select_subprotocol=self.select_subprotocol,
            # Heartbeats belong to LivenessMonitor.
            ping_interval=None,
            compression=None,
        )
        LOGGER.info("simulation websocket listening on ws://%s:%d%s", host, port, self.path)
        return server
