"""
Fixed-rate carriage motion integrator

Each tick drives the carriage in a straight line toward its goal. The
axis with the larger remaining distance runs at the full scaled speed,
the other axis is slowed in proportion so the velocity vector points
at the goal. Axes within snap_epsilon of their goal are assigned the
goal value itself, so convergence is exact rather than asymptotic.
"""

import logging
from typing import Tuple

from core.types import Position2D
from motion.base import MotionState

logger = logging.getLogger(__name__)


def compute_velocity(position: Position2D, goal: Position2D, speed: float) -> Tuple[float, float]:
    """
    Velocity (vx, vy) toward goal with the major axis at full speed

    Args:
        position: Current carriage position
        goal: Target position
        speed: Nominal speed already multiplied by the velocity scale

    Returns:
        Velocity in units per second for x and y
    """
    dx = goal.x - position.x
    dy = goal.y - position.y

    if dx == 0 and dy == 0:
        return 0.0, 0.0

    # x wins ties, so a zero delta is never the divisor
    if abs(dy) > abs(dx):
        vy = speed if dy > 0 else -speed
        vx = dx / abs(dy) * speed
    else:
        vx = speed if dx > 0 else -speed
        vy = dy / abs(dx) * speed

    return vx, vy


class MotionSimulator:
    """
    Advances MotionState.position toward MotionState.goal once per tick

    Args:
        nominal_speed: Top speed at velocity scale 1.0 (units/s)
        tick_period: Integration step (s)
        snap_epsilon: Distance under which an axis snaps onto its goal
        gate_on_motors: When True, ticks do nothing while motors are off
    """

    def __init__(self, nominal_speed: float, tick_period: float,
                 snap_epsilon: float = 2.4, gate_on_motors: bool = False):
        self.nominal_speed = nominal_speed
        self.tick_period = tick_period
        self.snap_epsilon = snap_epsilon
        self.gate_on_motors = gate_on_motors

    def step(self, state: MotionState) -> bool:
        """
        Integrate one tick

        Returns:
            True if the position changed
        """
        if self.gate_on_motors and not state.actuators.motors_on:
            return False

        if state.at_goal():
            return False

        position = state.position
        goal = state.goal

        vx, vy = compute_velocity(position, goal, self.nominal_speed * state.v_scale)
        x = position.x + vx * self.tick_period
        y = position.y + vy * self.tick_period

        if abs(goal.x - x) <= self.snap_epsilon:
            x = goal.x
        if abs(goal.y - y) <= self.snap_epsilon:
            y = goal.y

        moved = x != position.x or y != position.y
        state.position = Position2D(x, y)

        if moved:
            logger.debug(f"Tick: {state.position} -> goal {goal}")
        return moved
