"""Wire codec for server -> client state messages.

The agent array is serialized once per broadcast interval and reused for
every connection. The ``{agents, timestamp}`` envelope is assembled around
the already-encoded array; only the array takes part in change detection.
"""

from __future__ import annotations

import time
from typing import Sequence

from pydantic import TypeAdapter

from agentfield.protocol.models import AgentRecord, StateMessage


_AGENTS_ADAPTER = TypeAdapter(list[AgentRecord])


def now_ms() -> int:
    return int(time.time() * 1000)


def encode_agents(records: Sequence[AgentRecord]) -> str:
    return _AGENTS_ADAPTER.dump_json(list(records), by_alias=True).decode("utf-8")


def build_message(agents_json: str, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    return '{"agents":' + agents_json + ',"timestamp":' + str(int(timestamp_ms)) + "}"


def decode_message(raw: str | bytes) -> StateMessage:
    """Parse and validate one inbound state message.

    Raises ``pydantic.ValidationError`` for anything that is not a valid
    ``{agents, timestamp}`` object, including invalid JSON.
    """
    return StateMessage.model_validate_json(raw)
