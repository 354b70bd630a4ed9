from __future__ import annotations

import math

from autoland.pid import PIDController


def test_proportional_output_and_clamping() -> None:
    pid = PIDController(kp=0.5, ki=0.0, kd=0.0)
    assert math.isclose(pid.update(1.0, 0.0, 0.1), 0.5)
    assert pid.update(10.0, 0.0, 0.1) == 1.0
    assert pid.update(-10.0, 0.0, 0.1) == -1.0


def test_output_stays_within_limits() -> None:
    pid = PIDController(kp=3.0, ki=2.0, kd=1.5, min_output=-0.25, max_output=0.75)
    for i in range(200):
        out = pid.update(math.sin(i * 0.3) * 50.0, math.cos(i * 0.7) * 20.0, 0.016)
        assert -0.25 <= out <= 0.75


def test_reset_then_replay_is_identical() -> None:
    pid = PIDController(kp=0.5, ki=0.05, kd=0.2)
    inputs = [(-5.0, -7.5 + i * 0.1, 1.0 / 60.0) for i in range(50)]

    first = [pid.update(*args) for args in inputs]
    pid.reset()
    second = [pid.update(*args) for args in inputs]

    assert first == second
    assert pid.integral != 0.0


def test_non_positive_dt_is_a_no_op() -> None:
    pid = PIDController(kp=1.0, ki=1.0, kd=1.0)
    pid.update(1.0, 0.0, 0.1)
    integral = pid.integral
    last = pid.last_error

    assert pid.update(5.0, 0.0, 0.0) == 0.0
    assert pid.update(5.0, 0.0, -0.1) == 0.0
    assert pid.integral == integral
    assert pid.last_error == last


def test_integral_is_clamped() -> None:
    pid = PIDController(kp=0.0, ki=1.0, kd=0.0, max_output=100.0, integral_limit=2.0)
    for _ in range(100):
        out = pid.update(1.0, 0.0, 1.0)
    assert math.isclose(pid.integral, 2.0)
    assert math.isclose(out, 2.0)


def test_derivative_uses_previous_error() -> None:
    pid = PIDController(kp=0.0, ki=0.0, kd=1.0, max_output=100.0, min_output=-100.0)
    assert math.isclose(pid.update(1.0, 0.0, 0.5), 2.0)
    assert math.isclose(pid.update(1.0, 0.0, 0.5), 0.0)
    assert math.isclose(pid.update(1.0, 0.5, 0.5), -1.0)


def test_non_finite_error_returns_zero() -> None:
    pid = PIDController()
    assert pid.update(float("nan"), 0.0, 0.1) == 0.0
    assert pid.integral == 0.0


def test_set_output_limits_orders_bounds() -> None:
    pid = PIDController(kp=10.0, ki=0.0, kd=0.0)
    pid.set_output_limits(2.0, -2.0)
    assert pid.min_output == -2.0
    assert pid.max_output == 2.0
    assert pid.update(1.0, 0.0, 0.1) == 2.0


def test_set_gains_takes_effect_on_next_update() -> None:
    pid = PIDController(kp=1.0, ki=0.0, kd=0.0, min_output=-10.0, max_output=10.0)
    assert pid.update(2.0, 0.0, 0.1) == 2.0
    pid.set_gains(3.0, 0.0, 0.0)
    assert pid.update(2.0, 0.0, 0.1) == 6.0
