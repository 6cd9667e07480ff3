from __future__ import annotations

import logging
import time
from typing import Callable

from agentfield.sim.engine import World


LOGGER = logging.getLogger("agentfield.sim.clock")


class SimulationClock:
    """Feeds measured wall-clock deltas into ``World.tick``.

    Elapsed time is capped at ``max_delta_ms`` so a stalled process resumes
    with an ordinary step. A tick that raises is logged and dropped.
    """

    def __init__(self, world: World, max_delta_ms: float = 32.0, timer: Callable[[], float] = time.perf_counter):
        self.world = world
        self.max_delta_ms = max_delta_ms
        self._timer = timer
        self._last = timer()
        self.last_tick_ms = 0.0
        self.avg_tick_ms = 0.0
        self.failed_ticks = 0

    def advance(self) -> bool:
        now = self._timer()
        delta_ms = min((now - self._last) * 1000.0, self.max_delta_ms)
        self._last = now

        try:
            self.world.tick(delta_ms)
        except Exception:
            self.failed_ticks += 1
            LOGGER.exception("error updating world state")
            return False

        tick_ms = (self._timer() - now) * 1000.0
        if self.avg_tick_ms <= 0.0:
            self.avg_tick_ms = tick_ms
        else:
            self.avg_tick_ms = (self.avg_tick_ms * 0.88) + (tick_ms * 0.12)
        self.last_tick_ms = tick_ms
        return True
