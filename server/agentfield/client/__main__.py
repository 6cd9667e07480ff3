from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter

from agentfield.client.reconnector import Reconnector
from agentfield.config import ClientSettings
from agentfield.protocol.models import AgentRecord


LOGGER = logging.getLogger("agentfield.client")


def summarize(agents: list[AgentRecord]) -> str:
    statuses = Counter(agent.characteristics.status for agent in agents)
    tally = ", ".join(f"{status}={statuses[status]}" for status in ("moving", "active", "resting"))
    return f"{len(agents)} agents ({tally})"


def notify_connection_lost() -> None:
    LOGGER.error("Connection Error: failed to connect to simulation server. Please restart the viewer.")


async def main() -> None:
    settings = ClientSettings.from_env()
    reconnector = Reconnector.from_settings(
        settings,
        on_agents=lambda agents: LOGGER.info(summarize(agents)),
        on_failure=notify_connection_lost,
    )
    reconnector.start()
    try:
        await reconnector.wait()
    finally:
        await reconnector.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
