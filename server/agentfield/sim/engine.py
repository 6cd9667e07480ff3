from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable

from agentfield.agents.agent import Characteristics, SimulationAgent, Vec2, status_for, utc_iso_ms
from agentfield.protocol.models import AgentRecord
from agentfield.sim.movement import (
    MIN_MOVEMENT_THRESHOLD,
    accelerate,
    reflect,
    suppress_jitter,
    time_scale,
)


LOGGER = logging.getLogger("agentfield.sim.engine")

MAX_SPEED = 0.01
ACCELERATION_FACTOR = 0.2
ENERGY_JITTER = 0.2
AGE_RATE = 0.01


def _clamp_float(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class WorldState:
    agents: dict[str, SimulationAgent]
    width: float
    height: float
    tick: int = 0

    @property
    def half_width(self) -> float:
        return self.width / 2

    @property
    def half_height(self) -> float:
        return self.height / 2


class World:
    """Population of wandering agents inside a bounded rectangle.

    ``tick`` is the only mutator of agent state; ``snapshot`` builds fresh
    wire records and never touches the agents.
    """

    def __init__(
        self,
        agent_count: int = 1000,
        width: float = 20.0,
        height: float = 12.0,
        rng: random.Random | None = None,
        nominal_frame_ms: float = 16.667,
        max_time_scale: float = 2.0,
        now: Callable[[], str] = utc_iso_ms,
    ):
        self.rng = rng or random.Random()
        self.nominal_frame_ms = nominal_frame_ms
        self.max_time_scale = max_time_scale
        self._now = now
        self.state = WorldState(agents=self._build_agents(agent_count, width, height), width=width, height=height)
        LOGGER.info("world initialised with %d agents (%.1f x %.1f)", agent_count, width, height)

    @property
    def world_state(self) -> WorldState:
        return self.state

    def _build_agents(self, count: int, width: float, height: float) -> dict[str, SimulationAgent]:
        rng = self.rng
        stamp = self._now()
        agents: dict[str, SimulationAgent] = {}
        for index in range(count):
            agent_id = f"agent-{index}"
            agents[agent_id] = SimulationAgent(
                id=agent_id,
                position=Vec2((rng.random() - 0.5) * width, (rng.random() - 0.5) * height),
                velocity=Vec2((rng.random() - 0.5) * MAX_SPEED, (rng.random() - 0.5) * MAX_SPEED),
                characteristics=Characteristics(
                    energy=rng.random() * 100,
                    speed=rng.random() * 100,
                    influence=rng.random() * 100,
                    age=float(rng.randrange(100)),
                    status="active",
                    last_updated=stamp,
                ),
            )
        return agents

    def __len__(self) -> int:
        return len(self.state.agents)

    def agent(self, agent_id: str) -> SimulationAgent | None:
        return self.state.agents.get(agent_id)

    def tick(self, delta_ms: float) -> None:
        scale = time_scale(delta_ms, self.nominal_frame_ms, self.max_time_scale)
        stamp = self._now()
        for agent in self.state.agents.values():
            self._step_agent(agent, scale, stamp)
        self.state.tick += 1

    def _step_agent(self, agent: SimulationAgent, scale: float, stamp: str) -> None:
        rng = self.rng
        accel_x = (rng.random() - 0.5) * MAX_SPEED * ACCELERATION_FACTOR
        accel_y = (rng.random() - 0.5) * MAX_SPEED * ACCELERATION_FACTOR
        velocity = suppress_jitter(accelerate(agent.velocity, accel_x, accel_y, scale))

        moved = Vec2(agent.position.x + velocity.x * scale, agent.position.y + velocity.y * scale)
        agent.position, agent.velocity = reflect(moved, velocity, self.state.half_width, self.state.half_height)

        traits = agent.characteristics
        traits.energy = _clamp_float(traits.energy + (rng.random() - 0.5) * ENERGY_JITTER * scale, 0.0, 100.0)
        traits.age += AGE_RATE * scale
        traits.status = status_for(agent.velocity.length(), traits.energy, MIN_MOVEMENT_THRESHOLD)
        traits.last_updated = stamp

    def snapshot(self) -> list[AgentRecord]:
        return [agent.to_record() for agent in self.state.agents.values()]
