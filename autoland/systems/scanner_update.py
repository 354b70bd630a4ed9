from __future__ import annotations

from autoland.protocols import VehicleProtocol
from autoland.systems.tick_loop import System


class ScannerSystem(System):
    """Feed the vehicle position to the landing-site scanner every tick."""

    def __init__(self, scanner, vehicle: VehicleProtocol):
        super().__init__()
        self.scanner = scanner
        self.vehicle = vehicle

    def update(self, dt: float) -> None:
        self.scanner.update(dt, self.vehicle.get_position())
