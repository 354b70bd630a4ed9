"""Discrete PID controller with integral anti-windup and output clamping.

Example:
    >>> pid = PIDController(kp=0.5, ki=0.05, kd=0.2)
    >>> thrust_correction = pid.update(target=-5.0, current=-7.5, dt=1 / 60)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass
class PIDController:
    """Parallel-form PID: u = kp * e + ki * integral(e) + kd * de/dt.

    The caller supplies `dt` on every update; the controller never reads a
    clock, so identical input sequences after `reset()` give identical output.
    """

    kp: float = 1.0
    ki: float = 0.0
    kd: float = 0.1
    min_output: float = -1.0
    max_output: float = 1.0
    integral_limit: float = 10.0

    _integral: float = field(default=0.0, init=False, repr=False)
    _last_error: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.min_output > self.max_output:
            self.min_output, self.max_output = self.max_output, self.min_output
        self.integral_limit = abs(self.integral_limit)

    def update(self, target: float, current: float, dt: float) -> float:
        if dt <= 0.0:
            return 0.0

        error = target - current
        if not math.isfinite(error):
            return 0.0

        self._integral += error * dt
        self._integral = max(-self.integral_limit, min(self.integral_limit, self._integral))

        derivative = (error - self._last_error) / dt
        self._last_error = error

        output = self.kp * error + self.ki * self._integral + self.kd * derivative
        return max(self.min_output, min(self.max_output, output))

    def reset(self) -> None:
        """Zero the integral and derivative history."""
        self._integral = 0.0
        self._last_error = 0.0

    def set_gains(self, kp: float, ki: float, kd: float) -> None:
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.reset()

    def set_output_limits(self, min_output: float, max_output: float) -> None:
        self.min_output = min(min_output, max_output)
        self.max_output = max(min_output, max_output)

    @property
    def integral(self) -> float:
        return self._integral

    @property
    def last_error(self) -> float:
        return self._last_error
