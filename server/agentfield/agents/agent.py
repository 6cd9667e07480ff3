from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime

from agentfield.protocol.models import AgentCharacteristics, AgentRecord, AgentStatus, Position


def utc_iso_ms() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Vec2:
    x: float = 0.0
    y: float = 0.0

    def length(self) -> float:
        return math.hypot(self.x, self.y)


def status_for(speed: float, energy: float, movement_threshold: float) -> AgentStatus:
    if speed > movement_threshold:
        return "moving"
    if energy > 50:
        return "active"
    return "resting"


@dataclass
class Characteristics:
    energy: float
    speed: float
    influence: float
    age: float
    status: AgentStatus = "active"
    last_updated: str = field(default_factory=utc_iso_ms)


@dataclass
class SimulationAgent:
    id: str
    position: Vec2
    velocity: Vec2
    characteristics: Characteristics
    state: str = "active"

    def to_record(self) -> AgentRecord:
        traits = self.characteristics
        return AgentRecord(
            id=self.id,
            position=Position(x=round(self.position.x, 3), y=round(self.position.y, 3)),
            state=self.state,
            connections=[],
            characteristics=AgentCharacteristics(
                energy=_round_half_up(traits.energy),
                speed=_round_half_up(traits.speed),
                influence=_round_half_up(traits.influence),
                age=math.floor(traits.age),
                status=traits.status,
                last_updated=traits.last_updated,
            ),
        )
