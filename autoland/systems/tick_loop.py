from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger()


class System(ABC):
    """Base class for per-tick systems driven by a TickLoop."""

    def __init__(self):
        self.loop: TickLoop | None = None

    @abstractmethod
    def update(self, dt: float):
        """Advance the system by one tick of length dt."""
        pass


class TickLoop:
    """Runs registered systems in order, once per step.

    Owns the tick counter and elapsed time; steps with dt <= 0 are ignored so
    no system ever sees a zero or negative delta.
    """

    def __init__(self):
        self.systems: list[System] = []
        self.tick = 0
        self.elapsed = 0.0

    def add_system(self, system: System) -> None:
        system.loop = self
        self.systems.append(system)

    def step(self, dt: float) -> bool:
        if dt <= 0.0:
            return False
        self.tick += 1
        self.elapsed += dt
        for system in self.systems:
            system.update(dt)
        return True

    def run(self, dt: float, steps: int) -> None:
        for _ in range(max(0, int(steps))):
            self.step(dt)
        logger.debug("Tick loop ran", steps=steps, tick=self.tick, elapsed=round(self.elapsed, 3))
