from __future__ import annotations

from autoland.systems.tick_loop import System


class AutopilotSystem(System):
    """Tick the landing autopilot; register after ScannerSystem."""

    def __init__(self, autopilot):
        super().__init__()
        self.autopilot = autopilot

    def update(self, dt: float) -> None:
        if not self.autopilot.is_active:
            return
        self.autopilot.update(dt)
